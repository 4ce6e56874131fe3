"""
tests/conftest.py

Shared catalog fixtures for matcher, optimizer and orchestrator tests.
"""

from __future__ import annotations

import pytest

from matching.memory_catalog import InMemoryCatalog
from matching.types import CatalogProduct

HP64_STANDARD = CatalogProduct(
    id="hp64-std",
    sku="HP-N9J90AN",
    product_name="HP 64 Black Ink Cartridge",
    brand="HP",
    model="64",
    category="ink_cartridge",
    color_type="black",
    size_category="standard",
    page_yield=200,
    family_series="HP 64",
    oem_number="N9J90AN",
    reference_price=18.99,
)

HP64_XL = CatalogProduct(
    id="hp64-xl",
    sku="HP-N9J92AN",
    product_name="HP 64XL Black Ink Cartridge",
    brand="HP",
    model="64XL",
    category="ink_cartridge",
    color_type="black",
    size_category="high",
    page_yield=600,
    family_series="HP 64",
    oem_number="N9J92AN",
    reference_price=29.99,
)

HP58A_TONER = CatalogProduct(
    id="hp58a",
    sku="HP-CF258A",
    product_name="HP 58A Black Toner Cartridge",
    brand="HP",
    model="58A",
    category="toner_cartridge",
    color_type="black",
    size_category="standard",
    page_yield=3000,
    family_series="HP 58",
    oem_number="CF258A",
    reference_price=99.00,
    list_price=129.99,
)


@pytest.fixture()
def products() -> list[CatalogProduct]:
    return [HP64_STANDARD, HP64_XL, HP58A_TONER]


@pytest.fixture()
def catalog(products: list[CatalogProduct]) -> InMemoryCatalog:
    return InMemoryCatalog(products)
