"""
造价估算Schema
"""
from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field

AreaUnit = Literal["sqft", "sqm"]


class PricingRequest(BaseModel):
    area: float
    unit: AreaUnit = "sqm"
    floors: int = Field(1, ge=1)
    style: str = "TRADITIONAL"
    complexity: str = "MODERATE"
    region: str = "NORTH_AMERICA"


class PriceBreakdown(BaseModel):
    base_price: float
    floor_adjustment: float
    style_adjustment: float
    complexity_adjustment: float
    region_adjustment: float


class PricingResult(BaseModel):
    total_price: float
    price_per_sqm: float
    price_per_sqft: float
    area_sqm: float
    area_sqft: float
    breakdown: PriceBreakdown


class BudgetRequest(BaseModel):
    budget: float
    region: str = "NORTH_AMERICA"


class BudgetRecommendation(BaseModel):
    max_area_sqm: int
    max_area_sqft: int
    suggested_floors: int
    suggested_style: str
    plan_type: str


class PricingFactorsResponse(BaseModel):
    base_price_per_sqm: float
    base_price_per_sqft: float
    floor_multipliers: Dict[int, float]
    style_multipliers: Dict[str, float]
    complexity_multipliers: Dict[str, float]
    region_multipliers: Dict[str, float]


class PricingResponse(BaseModel):
    """area/budget 非正数时 result 为空"""
    result: Optional[PricingResult] = None


class BudgetResponse(BaseModel):
    recommendation: Optional[BudgetRecommendation] = None
