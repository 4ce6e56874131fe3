"""
savings/pricing.py

Customer price resolution as an ordered list of providers. Each provider
either returns a tagged ResolvedPrice or None; the first hit wins.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from matching.types import CatalogProduct, RawLineItem
from savings.types import PriceSource, ResolvedPrice

PriceProvider = Callable[[RawLineItem, CatalogProduct], "ResolvedPrice | None"]


def _positive(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return float(value)


def stated_price(item: RawLineItem, product: CatalogProduct) -> ResolvedPrice | None:
    """The unit price written in the customer's file."""
    amount = _positive(item.unit_price)
    return ResolvedPrice(amount, PriceSource.USER_FILE) if amount is not None else None


def catalog_list_price(item: RawLineItem, product: CatalogProduct) -> ResolvedPrice | None:
    """The catalog list/partner price."""
    amount = _positive(product.list_price)
    return ResolvedPrice(amount, PriceSource.CATALOG_LIST_PRICE) if amount is not None else None


def marked_up_reference_price(markup: float) -> PriceProvider:
    """Estimate a market price from the reference price plus a fixed markup."""

    def provider(item: RawLineItem, product: CatalogProduct) -> ResolvedPrice | None:
        amount = _positive(product.reference_price)
        if amount is None:
            return None
        return ResolvedPrice(amount * markup, PriceSource.ESTIMATED_FROM_REFERENCE)

    return provider


def default_price_providers(markup: float) -> tuple[PriceProvider, ...]:
    return (stated_price, catalog_list_price, marked_up_reference_price(markup))


def resolve_customer_price(
    item: RawLineItem,
    product: CatalogProduct,
    providers: Sequence[PriceProvider],
) -> ResolvedPrice | None:
    for provider in providers:
        resolved = provider(item, product)
        if resolved is not None:
            return resolved
    return None


def offer_price(product: CatalogProduct) -> float | None:
    """
    Price we can sell at: reference price, then list price, then raw cost.
    """

    for value in (product.reference_price, product.list_price, product.cost):
        amount = _positive(value)
        if amount is not None:
            return amount
    return None


def cost_per_page(unit_price: float | None, page_yield: int | None) -> float | None:
    """Unit price divided by page yield; None when either is missing or non-positive."""
    if not unit_price or unit_price <= 0 or not page_yield or page_yield <= 0:
        return None
    return unit_price / page_yield
