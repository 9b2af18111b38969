"""
造价估算：按面积、层数、风格、复杂度、地区估算设计费，以及按预算反推可建面积

纯函数，无数据库与外部依赖。
总价 = 基础价 + Σ 基础价 × (系数 - 1)，各系数调整额独立计算后相加。
"""
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

SQFT_TO_SQM = 0.092903
SQM_TO_SQFT = 10.7639


def _default_floor_multipliers() -> Dict[int, float]:
    return {1: 1.0, 2: 1.3, 3: 1.6, 4: 2.0}


def _default_style_multipliers() -> Dict[str, float]:
    return {
        "MODERN": 1.2,
        "TRADITIONAL": 1.0,
        "LUXURY": 1.8,
        "MINIMALIST": 0.9,
        "FARMHOUSE": 1.1,
        "VICTORIAN": 1.5,
        "COLONIAL": 1.3,
        "COMMERCIAL": 1.4,
    }


def _default_complexity_multipliers() -> Dict[str, float]:
    return {"SIMPLE": 0.8, "MODERATE": 1.0, "COMPLEX": 1.4, "VERY_COMPLEX": 1.8}


def _default_region_multipliers() -> Dict[str, float]:
    return {"NORTH_AMERICA": 1.0, "EUROPE": 1.2, "ASIA": 0.8, "AUSTRALIA": 1.1, "OTHER": 0.9}


@dataclass(frozen=True)
class PricingFactors:
    """估价系数表；未知的层数/风格/复杂度/地区按 1.0 处理"""
    base_price_per_sqm: float = 15.0
    floor_multipliers: Dict[int, float] = field(default_factory=_default_floor_multipliers)
    style_multipliers: Dict[str, float] = field(default_factory=_default_style_multipliers)
    complexity_multipliers: Dict[str, float] = field(default_factory=_default_complexity_multipliers)
    region_multipliers: Dict[str, float] = field(default_factory=_default_region_multipliers)

    @property
    def base_price_per_sqft(self) -> float:
        return self.base_price_per_sqm * SQFT_TO_SQM

    def floor(self, floors: int) -> float:
        return self.floor_multipliers.get(floors, 1.0)

    def style(self, style: str) -> float:
        return self.style_multipliers.get((style or "").upper(), 1.0)

    def complexity(self, complexity: str) -> float:
        return self.complexity_multipliers.get((complexity or "").upper(), 1.0)

    def region(self, region: str) -> float:
        return self.region_multipliers.get((region or "").upper(), 1.0)

    def as_dict(self) -> dict:
        return {
            "base_price_per_sqm": self.base_price_per_sqm,
            "base_price_per_sqft": round(self.base_price_per_sqft, 4),
            "floor_multipliers": dict(self.floor_multipliers),
            "style_multipliers": dict(self.style_multipliers),
            "complexity_multipliers": dict(self.complexity_multipliers),
            "region_multipliers": dict(self.region_multipliers),
        }


DEFAULT_FACTORS = PricingFactors()


def convert_area_to_sqm(value: float, unit: str) -> float:
    return value * SQFT_TO_SQM if unit == "sqft" else value


def convert_area_to_sqft(value: float, unit: str) -> float:
    return value * SQM_TO_SQFT if unit == "sqm" else value


def calculate_pricing(
    area: float,
    unit: str = "sqm",
    floors: int = 1,
    style: str = "TRADITIONAL",
    complexity: str = "MODERATE",
    region: str = "NORTH_AMERICA",
    factors: PricingFactors = DEFAULT_FACTORS,
) -> Optional[dict]:
    """
    估算设计费。面积非正数返回 None。

    例：150 m²、MODERN、1 层、MODERATE、NORTH_AMERICA
    → 基础价 2250，风格调整 450，总价 2700。
    """
    if area is None or area <= 0:
        return None
    area_sqm = convert_area_to_sqm(area, unit)
    area_sqft = convert_area_to_sqft(area, unit)

    base_price = area_sqm * factors.base_price_per_sqm
    floor_adjustment = base_price * (factors.floor(floors) - 1)
    style_adjustment = base_price * (factors.style(style) - 1)
    complexity_adjustment = base_price * (factors.complexity(complexity) - 1)
    region_adjustment = base_price * (factors.region(region) - 1)

    total = base_price + floor_adjustment + style_adjustment + complexity_adjustment + region_adjustment
    return {
        "total_price": round(total, 2),
        "price_per_sqm": round(total / area_sqm, 2),
        "price_per_sqft": round(total / area_sqft, 2),
        "area_sqm": round(area_sqm, 2),
        "area_sqft": round(area_sqft, 2),
        "breakdown": {
            "base_price": round(base_price, 2),
            "floor_adjustment": round(floor_adjustment, 2),
            "style_adjustment": round(style_adjustment, 2),
            "complexity_adjustment": round(complexity_adjustment, 2),
            "region_adjustment": round(region_adjustment, 2),
        },
    }


def _plan_type_for_area(max_sqm: int) -> str:
    if max_sqm > 200:
        return "Large Family Home"
    if max_sqm > 100:
        return "Medium Family Home"
    return "Small Home/Apartment"


def recommend_for_budget(
    budget: float,
    region: str = "NORTH_AMERICA",
    factors: PricingFactors = DEFAULT_FACTORS,
) -> Optional[dict]:
    """按预算反推最大面积，按单层、TRADITIONAL、SIMPLE 的最低组合计价。预算非正数返回 None。"""
    if budget is None or budget <= 0:
        return None
    rate = (
        factors.base_price_per_sqm
        * factors.floor(1)
        * factors.style("TRADITIONAL")
        * factors.complexity("SIMPLE")
        * factors.region(region)
    )
    max_sqm = math.floor(budget / rate)
    max_sqft = math.floor(max_sqm * SQM_TO_SQFT)
    return {
        "max_area_sqm": max_sqm,
        "max_area_sqft": max_sqft,
        "suggested_floors": 1,
        "suggested_style": "TRADITIONAL",
        "plan_type": _plan_type_for_area(max_sqm),
    }
