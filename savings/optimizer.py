"""
savings/optimizer.py

Cost-per-page savings optimizer.

For each matched item the optimizer resolves what the customer pays, then
compares two options:

    better_price  - repurchase the same product at our offer price
    higher_yield  - switch to a same-family, same-color product with a
                    materially lower cost per page

and keeps whichever saves more. Items with no improving option receive an
explicit ``none`` recommendation so the report can still show them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from app.config import OptimizerSettings
from matching.base import CatalogLookup
from matching.types import CatalogProduct, MatchResult, yield_rank
from savings.environmental import environmental_impact
from savings.pricing import (
    PriceProvider,
    cost_per_page,
    default_price_providers,
    offer_price,
    resolve_customer_price,
)
from savings.types import (
    EnvironmentalImpact,
    HigherYieldOption,
    ItemAnalysis,
    MatchType,
    Recommendation,
    PriceSource,
    RecommendationType,
    ResolvedPrice,
)

logger = logging.getLogger(__name__)

MAX_MONEY = 99_999_999.99
MONTHS_PER_YEAR = 12


def _money(value: float) -> float:
    return round(min(max(value, 0.0), MAX_MONEY), 2)


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _no_recommendation(reason: str, quantity: int = 0) -> Recommendation:
    return Recommendation(
        type=RecommendationType.NONE,
        product=None,
        quantity=quantity,
        total_cost=0.0,
        savings=0.0,
        justification=reason,
    )


class SavingsOptimizer:
    """
    Produces one ItemAnalysis per MatchResult.

    The catalog is only consulted for higher-yield family lookups.
    """

    def __init__(
        self,
        *,
        catalog: CatalogLookup,
        settings: OptimizerSettings | None = None,
        price_providers: Sequence[PriceProvider] | None = None,
    ) -> None:
        self._catalog = catalog
        self._settings = settings or OptimizerSettings()
        self._price_providers = tuple(
            price_providers
            if price_providers is not None
            else default_price_providers(self._settings.reference_markup)
        )

    def optimize_all(self, matches: Iterable[MatchResult]) -> list[ItemAnalysis]:
        return [self.optimize(match) for match in matches]

    def optimize(self, match: MatchResult) -> ItemAnalysis:
        item = match.item
        product = match.product

        if product is None:
            price = ResolvedPrice(item.unit_price, PriceSource.USER_FILE) if item.unit_price > 0 else None
            current_total = _money(item.unit_price * item.quantity) if price else 0.0
            return ItemAnalysis(
                match=match,
                price=price,
                current_total=current_total,
                recommendation=_no_recommendation("No catalog match found.", item.quantity),
                match_type=MatchType.NO_MATCH,
            )

        price = resolve_customer_price(item, product, self._price_providers)
        if price is None:
            return ItemAnalysis(
                match=match,
                price=None,
                current_total=0.0,
                recommendation=_no_recommendation(
                    "Matched, but pricing information is needed to calculate savings.",
                    item.quantity,
                ),
                match_type=MatchType.OEM_ONLY,
            )

        current_total = price.amount * item.quantity
        recommendation = self._choose(product, item.quantity, price, current_total)
        units_avoided = item.quantity - recommendation.quantity if recommendation.is_actionable else 0
        impact = environmental_impact(units_avoided, product.category) if units_avoided > 0 else EnvironmentalImpact()

        if recommendation.is_actionable and (product.reference_price or 0) > 0:
            match_type = MatchType.REMANUFACTURED
        else:
            match_type = MatchType.OEM_ONLY

        logger.debug(
            "Optimized row=%s price=%.2f source=%s recommendation=%s savings=%.2f",
            item.row_number,
            price.amount,
            price.source,
            recommendation.type,
            recommendation.savings,
        )
        return ItemAnalysis(
            match=match,
            price=price,
            current_total=_money(current_total),
            recommendation=recommendation,
            environmental=impact,
            match_type=match_type,
        )

    # ------------------------------------------------------------------
    # Option selection
    # ------------------------------------------------------------------

    def _choose(
        self,
        product: CatalogProduct,
        quantity: int,
        price: ResolvedPrice,
        current_total: float,
    ) -> Recommendation:
        offer = offer_price(product)
        same_product_savings = 0.0
        if offer is not None and offer < price.amount:
            same_product_savings = (price.amount - offer) * quantity

        higher_yield = self.find_higher_yield(product, quantity=quantity, customer_price=price.amount)

        if higher_yield is not None and higher_yield.savings > same_product_savings:
            if _money(higher_yield.savings) > 0:
                return Recommendation(
                    type=RecommendationType.HIGHER_YIELD,
                    product=higher_yield.product,
                    quantity=higher_yield.quantity,
                    total_cost=_money(higher_yield.total_cost),
                    savings=_money(higher_yield.savings),
                    justification=higher_yield.justification,
                    cost_per_page=higher_yield.cpp_recommended,
                )

        if offer is not None and _money(same_product_savings) > 0:
            per_unit = price.amount - offer
            return Recommendation(
                type=RecommendationType.BETTER_PRICE,
                product=product,
                quantity=quantity,
                total_cost=_money(offer * quantity),
                savings=_money(same_product_savings),
                justification=(
                    f"Same product at ${offer:.2f}/unit instead of ${price.amount:.2f} "
                    f"(save ${per_unit:.2f}/unit on {quantity} unit{'s' if quantity != 1 else ''})."
                ),
                cost_per_page=cost_per_page(offer, product.page_yield),
            )

        if current_total <= 0:
            return _no_recommendation("No spend recorded for this item.", quantity)
        return _no_recommendation("Already at or below our price; no savings possible.", quantity)

    def find_higher_yield(
        self,
        product: CatalogProduct,
        *,
        quantity: int,
        customer_price: float,
    ) -> HigherYieldOption | None:
        """
        Search the product's family for a cheaper-per-page variant.

        Candidates need the same color, a yield class at least the current
        one and a page yield of at least ``yield_tolerance`` times the current
        yield. The lowest-CPP candidate must differ from the current product,
        beat its CPP by ``min_cpp_improvement`` and save more than
        ``min_annual_savings`` per year at ``monthly_pages``.
        """

        settings = self._settings
        if not product.family_series or not product.page_yield or product.page_yield <= 0:
            return None
        current_cpp = cost_per_page(offer_price(product), product.page_yield)
        if current_cpp is None:
            return None

        # A candidate may have fewer pages than the current product as long as
        # its yield class is not lower.
        min_pages = product.page_yield * settings.yield_tolerance
        current_rank = yield_rank(product.size_category)

        ranked: list[tuple[float, CatalogProduct, float]] = []
        for candidate in self._catalog.family_lookup(product.family_series, product.color_type, product.size_category):
            if not candidate.active or not candidate.page_yield or candidate.page_yield < min_pages:
                continue
            if (candidate.color_type or None) != (product.color_type or None):
                continue
            if yield_rank(candidate.size_category) < current_rank:
                continue
            candidate_price = offer_price(candidate)
            candidate_cpp = cost_per_page(candidate_price, candidate.page_yield)
            if candidate_price is None or candidate_cpp is None:
                continue
            ranked.append((candidate_cpp, candidate, candidate_price))

        if not ranked:
            return None
        ranked.sort(key=lambda entry: entry[0])
        best_cpp, best, best_price = ranked[0]

        if best.id == product.id:
            return None
        if best_cpp >= current_cpp * (1.0 - settings.min_cpp_improvement):
            return None
        annual_savings = (current_cpp - best_cpp) * settings.monthly_pages * MONTHS_PER_YEAR
        if annual_savings <= settings.min_annual_savings:
            return None

        if not best.page_yield:
            return None
        pages_needed = quantity * product.page_yield
        quantity_needed = _ceil_div(pages_needed, best.page_yield)
        current_total = quantity * customer_price
        recommended_total = quantity_needed * best_price
        savings = current_total - recommended_total
        if savings <= 0:
            return None

        improvement_pct = (current_cpp - best_cpp) / current_cpp * 100
        units_saved = quantity - quantity_needed
        yield_label = (best.size_category or "high").replace("_", " ").upper()
        justification = (
            f"Switch to {yield_label} yield {best.product_name} "
            f"({best.page_yield:,} pages vs {product.page_yield:,} pages). "
            f"Cost per page: ${best_cpp:.4f} vs current ${current_cpp:.4f} ({improvement_pct:.1f}% better). "
            f"Saves {units_saved} cartridge{'s' if units_saved != 1 else ''} and ${savings:.2f}."
        )
        return HigherYieldOption(
            product=best,
            unit_price=best_price,
            quantity=quantity_needed,
            total_cost=recommended_total,
            savings=savings,
            cpp_current=current_cpp,
            cpp_recommended=best_cpp,
            annual_savings_at_volume=annual_savings,
            justification=justification,
        )
