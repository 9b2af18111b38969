"""
造价估算API
"""
from fastapi import APIRouter

from archplans.schemas.pricing import (
    BudgetRequest,
    BudgetResponse,
    PricingFactorsResponse,
    PricingRequest,
    PricingResponse,
)
from archplans.services.pricing_service import DEFAULT_FACTORS, calculate_pricing, recommend_for_budget

router = APIRouter()


@router.get("/factors", response_model=PricingFactorsResponse)
async def pricing_factors():
    """估价系数表"""
    return DEFAULT_FACTORS.as_dict()


@router.post("/calculate", response_model=PricingResponse)
async def calculate(body: PricingRequest):
    """面积非正数时 result 为空"""
    result = calculate_pricing(
        body.area,
        unit=body.unit,
        floors=body.floors,
        style=body.style,
        complexity=body.complexity,
        region=body.region,
    )
    return PricingResponse(result=result)


@router.post("/budget", response_model=BudgetResponse)
async def budget(body: BudgetRequest):
    """按预算推荐面积；预算非正数时 recommendation 为空"""
    return BudgetResponse(recommendation=recommend_for_budget(body.budget, region=body.region))
