"""
savings/environmental.py

Fixed per-unit conversion factors for environmental savings proxies.
"""

from __future__ import annotations

from dataclasses import dataclass

from savings.types import EnvironmentalImpact

# One tree absorbs roughly 48 lbs of CO2 per year.
CO2_LBS_PER_TREE = 48.0
PLASTIC_LBS_PER_UNIT = 2.0


@dataclass(frozen=True)
class CategoryFactors:
    co2_lbs_per_unit: float
    shipping_lbs_per_unit: float


TONER_FACTORS = CategoryFactors(co2_lbs_per_unit=5.2, shipping_lbs_per_unit=2.5)
INK_FACTORS = CategoryFactors(co2_lbs_per_unit=2.5, shipping_lbs_per_unit=0.2)


def factors_for_category(category: str | None) -> CategoryFactors:
    """
    Toner-class items carry the heavier factors; every other consumable
    uses the ink-class factors.
    """

    if category and "toner" in category.lower():
        return TONER_FACTORS
    return INK_FACTORS


def environmental_impact(units_avoided: int, category: str | None) -> EnvironmentalImpact:
    units = max(0, units_avoided)
    if units == 0:
        return EnvironmentalImpact()
    factors = factors_for_category(category)
    co2 = units * factors.co2_lbs_per_unit
    return EnvironmentalImpact(
        units_avoided=units,
        co2_lbs=round(co2, 2),
        trees=round(co2 / CO2_LBS_PER_TREE, 4),
        plastic_lbs=round(units * PLASTIC_LBS_PER_UNIT, 2),
        shipping_weight_lbs=round(units * factors.shipping_lbs_per_unit, 2),
    )


def combine(impacts: list[EnvironmentalImpact]) -> EnvironmentalImpact:
    co2 = sum(impact.co2_lbs for impact in impacts)
    return EnvironmentalImpact(
        units_avoided=sum(impact.units_avoided for impact in impacts),
        co2_lbs=round(co2, 2),
        trees=round(co2 / CO2_LBS_PER_TREE, 2),
        plastic_lbs=round(sum(impact.plastic_lbs for impact in impacts), 2),
        shipping_weight_lbs=round(sum(impact.shipping_weight_lbs for impact in impacts), 2),
    )
