"""
造价估算与预算推荐
"""
import pytest

from archplans.services.pricing_service import (
    PricingFactors,
    calculate_pricing,
    convert_area_to_sqft,
    convert_area_to_sqm,
    recommend_for_budget,
)


def test_modern_single_floor_example():
    result = calculate_pricing(150, unit="sqm", floors=1, style="MODERN")
    assert result["breakdown"]["base_price"] == 2250
    assert result["breakdown"]["style_adjustment"] == 450
    assert result["total_price"] == 2700
    assert result["price_per_sqm"] == 18


def test_adjustments_are_additive():
    result = calculate_pricing(100, floors=2, style="LUXURY", complexity="COMPLEX", region="EUROPE")
    base = 1500
    expected = base + base * 0.3 + base * 0.8 + base * 0.4 + base * 0.2
    assert result["total_price"] == pytest.approx(expected, abs=0.01)


def test_sqft_input_is_converted():
    result = calculate_pricing(1000, unit="sqft")
    assert result["area_sqm"] == pytest.approx(92.9, abs=0.01)
    assert result["area_sqft"] == 1000
    assert result["total_price"] == pytest.approx(92.903 * 15, abs=0.01)


def test_unknown_factors_default_to_one():
    assert calculate_pricing(100, floors=9, style="BRUTALIST")["total_price"] == 1500


@pytest.mark.parametrize("area", [0, -10, None])
def test_non_positive_area_returns_none(area):
    assert calculate_pricing(area) is None


def test_area_conversion_round_trip():
    sqm = convert_area_to_sqm(convert_area_to_sqft(120, "sqm"), "sqft")
    assert sqm == pytest.approx(120, rel=1e-4)


def test_budget_recommendation():
    rec = recommend_for_budget(3000)
    assert rec == {
        "max_area_sqm": 250,
        "max_area_sqft": 2690,
        "suggested_floors": 1,
        "suggested_style": "TRADITIONAL",
        "plan_type": "Large Family Home",
    }
    assert recommend_for_budget(1200)["plan_type"] == "Small Home/Apartment"
    assert recommend_for_budget(0) is None


def test_custom_factors():
    factors = PricingFactors(base_price_per_sqm=10.0)
    assert calculate_pricing(10, factors=factors)["total_price"] == 100


def test_pricing_endpoints(client):
    resp = client.post("/api/pricing/calculate", json={"area": 150, "style": "MODERN"})
    assert resp.status_code == 200
    assert resp.json()["result"]["total_price"] == 2700

    resp = client.post("/api/pricing/calculate", json={"area": 0})
    assert resp.json()["result"] is None

    resp = client.post("/api/pricing/budget", json={"budget": 3000, "region": "EUROPE"})
    assert resp.json()["recommendation"]["max_area_sqm"] == 208

    factors = client.get("/api/pricing/factors").json()
    assert factors["style_multipliers"]["MODERN"] == 1.2
