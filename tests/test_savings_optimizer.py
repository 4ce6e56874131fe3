"""
tests/test_savings_optimizer.py

Price resolution, better-price and higher-yield recommendations.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from matching.matcher import ProductMatcher
from matching.memory_catalog import InMemoryCatalog
from matching.types import CatalogProduct, MatchMethod, MatchResult, RawLineItem
from savings.environmental import combine, environmental_impact
from savings.optimizer import SavingsOptimizer
from savings.pricing import cost_per_page, offer_price
from savings.types import MatchType, PriceSource, RecommendationType


def _by_id(products: list[CatalogProduct], product_id: str) -> CatalogProduct:
    return next(product for product in products if product.id == product_id)


def _matched(product: CatalogProduct | None, *, quantity: int, unit_price: float = 0.0) -> MatchResult:
    item = RawLineItem(
        row_number=1,
        product_name=product.product_name if product else "Mystery Desk Widget",
        quantity=quantity,
        unit_price=unit_price,
    )
    return MatchResult(
        item=item,
        product=product,
        score=1.0 if product else 0.0,
        method=MatchMethod.EXACT_SKU if product else MatchMethod.NONE,
    )


def _family_product(product_id: str, size: str, page_yield: int, price: float) -> CatalogProduct:
    return CatalogProduct(
        id=product_id,
        sku=product_id.upper(),
        product_name=f"Brother TN {product_id}",
        brand="Brother",
        category="toner_cartridge",
        color_type="black",
        size_category=size,
        page_yield=page_yield,
        family_series="Brother TN7",
        reference_price=price,
    )


# ---------------------------------------------------------------------------
# Pricing helpers
# ---------------------------------------------------------------------------


class TestPricing:
    def test_offer_price_prefers_reference(self, products) -> None:
        assert offer_price(_by_id(products, "hp58a")) == 99.00

    def test_offer_price_falls_back_to_cost(self) -> None:
        product = CatalogProduct(id="p", sku="P", product_name="Paper", cost=4.5)
        assert offer_price(product) == 4.5

    def test_cost_per_page_requires_positive_inputs(self) -> None:
        assert cost_per_page(20.0, 400) == 0.05
        assert cost_per_page(None, 400) is None
        assert cost_per_page(20.0, 0) is None


# ---------------------------------------------------------------------------
# Better price
# ---------------------------------------------------------------------------


class TestBetterPrice:
    def test_estimated_price_from_reference_markup(self, products) -> None:
        standard = _by_id(products, "hp64-std")
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([standard]))

        analysis = optimizer.optimize(_matched(standard, quantity=5))

        assert analysis.price.source == PriceSource.ESTIMATED_FROM_REFERENCE
        assert analysis.price.amount == pytest.approx(25.6365)
        assert analysis.price.is_assumed
        assert analysis.current_total == 128.18
        recommendation = analysis.recommendation
        assert recommendation.type == RecommendationType.BETTER_PRICE
        assert recommendation.product.id == "hp64-std"
        assert recommendation.total_cost == 94.95
        assert recommendation.savings == 33.23
        assert recommendation.justification == (
            "Same product at $18.99/unit instead of $25.64 (save $6.65/unit on 5 units)."
        )
        assert analysis.match_type == MatchType.REMANUFACTURED
        assert analysis.environmental.units_avoided == 0

    def test_catalog_list_price_is_used_before_markup(self, catalog, products) -> None:
        toner = _by_id(products, "hp58a")

        analysis = SavingsOptimizer(catalog=catalog).optimize(_matched(toner, quantity=2))

        assert analysis.price.source == PriceSource.CATALOG_LIST_PRICE
        assert analysis.current_total == 259.98
        assert analysis.recommendation.type == RecommendationType.BETTER_PRICE
        assert analysis.recommendation.savings == 61.98

    def test_stated_price_wins(self, catalog, products) -> None:
        xl = _by_id(products, "hp64-xl")

        analysis = SavingsOptimizer(catalog=catalog).optimize(_matched(xl, quantity=1, unit_price=35.00))

        assert analysis.price.source == PriceSource.USER_FILE
        assert not analysis.price.is_assumed
        assert analysis.recommendation.type == RecommendationType.BETTER_PRICE
        assert analysis.recommendation.savings == 5.01
        assert analysis.recommendation.justification.endswith("on 1 unit).")

    def test_price_at_or_below_offer_yields_no_savings(self, products) -> None:
        standard = _by_id(products, "hp64-std")
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([standard]))

        analysis = optimizer.optimize(_matched(standard, quantity=5, unit_price=15.00))

        assert analysis.recommendation.type == RecommendationType.NONE
        assert analysis.recommendation.justification == "Already at or below our price; no savings possible."
        assert analysis.savings == 0.0
        assert analysis.optimized_total == analysis.current_total == 75.0
        assert analysis.match_type == MatchType.OEM_ONLY


# ---------------------------------------------------------------------------
# Higher yield
# ---------------------------------------------------------------------------


class TestHigherYield:
    def test_higher_yield_beats_better_price(self, catalog, products) -> None:
        standard = _by_id(products, "hp64-std")

        analysis = SavingsOptimizer(catalog=catalog).optimize(_matched(standard, quantity=5))

        recommendation = analysis.recommendation
        assert recommendation.type == RecommendationType.HIGHER_YIELD
        assert recommendation.product.id == "hp64-xl"
        assert recommendation.quantity == 2
        assert recommendation.total_cost == 59.98
        assert recommendation.savings == 68.20
        assert recommendation.cost_per_page == pytest.approx(29.99 / 600)
        assert recommendation.justification.startswith(
            "Switch to HIGH yield HP 64XL Black Ink Cartridge (600 pages vs 200 pages)."
        )
        assert analysis.environmental.units_avoided == 3
        assert analysis.environmental.co2_lbs == 7.5
        assert analysis.environmental.plastic_lbs == 6.0
        assert analysis.match_type == MatchType.REMANUFACTURED

    def test_candidate_below_yield_tolerance_is_rejected(self) -> None:
        current = _family_product("tn760", "high", 1000, 50.0)
        smaller = _family_product("tn770", "extra_high", 700, 14.0)
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([current, smaller]))

        assert optimizer.find_higher_yield(current, quantity=1, customer_price=60.0) is None

    def test_candidate_within_yield_tolerance_is_accepted(self) -> None:
        current = _family_product("tn760", "high", 1000, 50.0)
        candidate = _family_product("tn770", "extra_high", 850, 14.0)
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([current, candidate]))

        option = optimizer.find_higher_yield(current, quantity=1, customer_price=60.0)

        assert option is not None
        assert option.product.id == "tn770"
        assert option.quantity == 2
        assert option.total_cost == 28.0
        assert option.savings == 32.0

    def test_lower_yield_class_is_never_recommended(self) -> None:
        current = _family_product("tn760", "high", 1000, 50.0)
        cheaper_standard = _family_product("tn730", "standard", 1200, 10.0)
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([current, cheaper_standard]))

        assert optimizer.find_higher_yield(current, quantity=1, customer_price=60.0) is None

    def test_product_without_family_has_no_higher_yield(self) -> None:
        product = CatalogProduct(id="p", sku="P", product_name="Stapler", reference_price=10.0, page_yield=1)
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([product]))

        assert optimizer.find_higher_yield(product, quantity=1, customer_price=20.0) is None


# ---------------------------------------------------------------------------
# Unmatched and unpriced items
# ---------------------------------------------------------------------------


class TestWithoutRecommendation:
    def test_unmatched_item_keeps_stated_spend(self, catalog) -> None:
        analysis = SavingsOptimizer(catalog=catalog).optimize(_matched(None, quantity=2, unit_price=10.0))

        assert analysis.match_type == MatchType.NO_MATCH
        assert analysis.current_total == 20.0
        assert analysis.optimized_total == 20.0
        assert analysis.recommendation.type == RecommendationType.NONE
        assert analysis.recommendation.product is None

    def test_matched_item_without_any_price(self) -> None:
        product = CatalogProduct(id="p", sku="P", product_name="Unpriced Toner")
        optimizer = SavingsOptimizer(catalog=InMemoryCatalog([product]))

        analysis = optimizer.optimize(_matched(product, quantity=3))

        assert analysis.price is None
        assert analysis.current_total == 0.0
        assert analysis.match_type == MatchType.OEM_ONLY
        assert "pricing information is needed" in analysis.recommendation.justification

    def test_optimize_all_keeps_order(self, catalog, products) -> None:
        matches = [_matched(None, quantity=1), _matched(_by_id(products, "hp58a"), quantity=1)]

        analyses = SavingsOptimizer(catalog=catalog).optimize_all(matches)

        assert [a.match_type for a in analyses] == [MatchType.NO_MATCH, MatchType.REMANUFACTURED]


# ---------------------------------------------------------------------------
# Matched row through to recommendation
# ---------------------------------------------------------------------------


class TestDescriptionOnlyRow:
    def test_unpriced_row_without_page_yield_gets_better_price(self, products) -> None:
        standard = replace(_by_id(products, "hp64-std"), page_yield=None)
        catalog = InMemoryCatalog([standard, _by_id(products, "hp64-xl"), _by_id(products, "hp58a")])
        item = RawLineItem(row_number=1, product_name="HP 64 Black Ink", quantity=5, unit_price=0.0)

        match = ProductMatcher(catalog=catalog).match(item)
        analysis = SavingsOptimizer(catalog=catalog).optimize(match)

        assert match.method == MatchMethod.FULL_TEXT
        assert match.product.id == "hp64-std"
        assert match.product.oem_number == "N9J90AN"
        assert 0.70 <= match.score < 1.0
        assert analysis.price.source == PriceSource.ESTIMATED_FROM_REFERENCE
        assert round(analysis.price.amount, 2) == 25.64
        recommendation = analysis.recommendation
        assert recommendation.type == RecommendationType.BETTER_PRICE
        assert recommendation.product.id == "hp64-std"
        assert recommendation.savings == 33.23


# ---------------------------------------------------------------------------
# Environmental factors
# ---------------------------------------------------------------------------


class TestEnvironmental:
    def test_toner_factors(self) -> None:
        impact = environmental_impact(2, "toner_cartridge")

        assert impact.co2_lbs == 10.4
        assert impact.shipping_weight_lbs == 5.0
        assert impact.plastic_lbs == 4.0

    def test_zero_units_is_empty(self) -> None:
        assert environmental_impact(0, "ink_cartridge").units_avoided == 0

    def test_combine_sums_components(self) -> None:
        total = combine([environmental_impact(2, "toner_cartridge"), environmental_impact(3, "ink_cartridge")])

        assert total.units_avoided == 5
        assert total.co2_lbs == 17.9
        assert total.plastic_lbs == 10.0
