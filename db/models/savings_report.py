"""
db/models/savings_report.py

Aggregate savings summary and rendered artifact reference per completed job.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, Money, TimestampMixin



class SavingsReport(Base, TimestampMixin):
    __tablename__ = "savings_reports"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("processing_jobs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_current_cost: Mapped[float] = mapped_column(Money, nullable=False, default=0.0)
    total_optimized_cost: Mapped[float] = mapped_column(Money, nullable=False, default=0.0)
    total_savings: Mapped[float] = mapped_column(Money, nullable=False, default=0.0)
    savings_percentage: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False, default=0.0)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matched_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_with_savings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    summary: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Full SavingsSummary including environmental totals",
    )
    report_url: Mapped[str | None] = mapped_column(Text, nullable=True)
