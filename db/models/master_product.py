"""
db/models/master_product.py

Master catalog product, read by the matcher and the optimizer.
"""

from __future__ import annotations

import uuid
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, Computed, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import TSVECTOR
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, Money, TimestampMixin

EMBEDDING_DIMENSIONS = 1536

SEARCH_VECTOR_EXPRESSION = (
    "to_tsvector('english', "
    "coalesce(product_name, '') || ' ' || coalesce(brand, '') || ' ' || "
    "coalesce(model, '') || ' ' || coalesce(sku, '') || ' ' || coalesce(oem_number, ''))"
)


class MasterProduct(Base, TimestampMixin):
    __tablename__ = "master_products"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str | None] = mapped_column(String(128), nullable=True)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    category: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="toner_cartridge, ink_cartridge, ...",
    )
    color_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    size_category: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="standard, high, extra_high, super_high",
    )
    page_yield: Mapped[int | None] = mapped_column(Integer, nullable=True)
    family_series: Mapped[str | None] = mapped_column(String(128), nullable=True)
    compatibility_group: Mapped[str | None] = mapped_column(String(128), nullable=True)

    oem_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    wholesaler_sku: Mapped[str | None] = mapped_column(String(128), nullable=True)
    staples_sku: Mapped[str | None] = mapped_column(String(128), nullable=True)
    depot_sku: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reference_price: Mapped[float | None] = mapped_column(
        Money,
        nullable=True,
        comment="Our selling price per unit",
    )
    list_price: Mapped[float | None] = mapped_column(
        Money,
        nullable=True,
        comment="Partner list price per unit",
    )
    cost: Mapped[float | None] = mapped_column(Money, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    search_vector: Mapped[Any] = mapped_column(
        TSVECTOR,
        Computed(SEARCH_VECTOR_EXPRESSION, persisted=True),
        nullable=True,
    )
    embedding: Mapped[Any] = mapped_column(
        Vector(EMBEDDING_DIMENSIONS),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_master_products_sku", "sku"),
        Index("ix_master_products_oem_number", "oem_number"),
        Index("ix_master_products_family_color", "family_series", "color_type"),
        Index("ix_master_products_search_vector", "search_vector", postgresql_using="gin"),
    )
