"""
savings/types.py

Value types produced by the savings optimizer and the report assembler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from matching.types import CatalogProduct, MatchResult


class PriceSource:
    USER_FILE = "user_file"
    CATALOG_LIST_PRICE = "catalog_partner_list_price"
    ESTIMATED_FROM_REFERENCE = "estimated_from_reference_price"


class RecommendationType:
    BETTER_PRICE = "better_price"
    HIGHER_YIELD = "higher_yield"
    NONE = "none"


class MatchType:
    REMANUFACTURED = "remanufactured"
    OEM_ONLY = "oem_only"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ResolvedPrice:
    """
    Customer unit price plus the provider that produced it.
    """

    amount: float
    source: str

    @property
    def is_assumed(self) -> bool:
        return self.source != PriceSource.USER_FILE


@dataclass(frozen=True)
class EnvironmentalImpact:
    units_avoided: int = 0
    co2_lbs: float = 0.0
    trees: float = 0.0
    plastic_lbs: float = 0.0
    shipping_weight_lbs: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "units_avoided": self.units_avoided,
            "co2_lbs": self.co2_lbs,
            "trees": self.trees,
            "plastic_lbs": self.plastic_lbs,
            "shipping_weight_lbs": self.shipping_weight_lbs,
        }


@dataclass(frozen=True)
class Recommendation:
    """
    Chosen savings option for one matched item.

    ``type == none`` records that no improving option exists; in that case
    ``product`` is None and ``savings`` is 0. Any other type carries
    strictly positive savings.
    """

    type: str
    product: CatalogProduct | None
    quantity: int
    total_cost: float
    savings: float
    justification: str
    cost_per_page: float | None = None

    @property
    def is_actionable(self) -> bool:
        return self.type != RecommendationType.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "product_id": self.product.id if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "product_name": self.product.product_name if self.product else None,
            "quantity": self.quantity,
            "total_cost": self.total_cost,
            "savings": self.savings,
            "justification": self.justification,
            "cost_per_page": self.cost_per_page,
        }


@dataclass(frozen=True)
class HigherYieldOption:
    product: CatalogProduct
    unit_price: float
    quantity: int
    total_cost: float
    savings: float
    cpp_current: float
    cpp_recommended: float
    annual_savings_at_volume: float
    justification: str


@dataclass(frozen=True)
class ItemAnalysis:
    """
    Optimizer output for one line item, matched or not.
    """

    match: MatchResult
    price: ResolvedPrice | None
    current_total: float
    recommendation: Recommendation
    environmental: EnvironmentalImpact = field(default_factory=EnvironmentalImpact)
    match_type: str = MatchType.NO_MATCH

    @property
    def savings(self) -> float:
        return self.recommendation.savings if self.recommendation.is_actionable else 0.0

    @property
    def optimized_total(self) -> float:
        if self.recommendation.is_actionable:
            return self.recommendation.total_cost
        return self.current_total


@dataclass(frozen=True)
class SavingsSummary:
    total_current_cost: float
    total_optimized_cost: float
    total_savings: float
    savings_percentage: float
    total_items: int
    matched_items: int
    items_with_savings: int
    environmental: EnvironmentalImpact
    remanufactured_items: int = 0
    oem_only_items: int = 0
    no_match_items: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_current_cost": self.total_current_cost,
            "total_optimized_cost": self.total_optimized_cost,
            "total_savings": self.total_savings,
            "savings_percentage": self.savings_percentage,
            "total_items": self.total_items,
            "matched_items": self.matched_items,
            "items_with_savings": self.items_with_savings,
            "remanufactured_items": self.remanufactured_items,
            "oem_only_items": self.oem_only_items,
            "no_match_items": self.no_match_items,
            "environmental": self.environmental.to_dict(),
        }
