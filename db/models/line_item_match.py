"""
db/models/line_item_match.py

One persisted purchase row with its match and, after the final chunk, its
savings recommendation.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, Money, TimestampMixin



class LineItemMatch(Base, TimestampMixin):
    __tablename__ = "line_item_matches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("processing_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Extracted row
    raw_product_name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    raw_sku: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    sku_candidates: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Candidate SKUs by namespace plus the ordered list",
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    unit_price: Mapped[float] = mapped_column(
        Money,
        nullable=False,
        default=0.0,
    )
    uom: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
    )
    extraction_confidence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
    )

    # Match
    matched_product_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    matched_product: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Snapshot of the matched catalog product",
    )
    match_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="none",
    )
    match_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
    )
    match_attempts: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType,
        nullable=True,
    )

    # Savings, filled by the final chunk
    price_source: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    resolved_unit_price: Mapped[float | None] = mapped_column(
        Money,
        nullable=True,
    )
    current_total: Mapped[float | None] = mapped_column(
        Money,
        nullable=True,
    )
    recommendation_type: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    recommendation: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )
    savings: Mapped[float | None] = mapped_column(
        Money,
        nullable=True,
    )
    match_type: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    environmental: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("job_id", "row_number", name="uq_line_item_matches_job_row"),
        Index("ix_line_item_matches_job_id", "job_id"),
        Index("ix_line_item_matches_match_method", "match_method"),
    )
