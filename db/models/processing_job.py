"""
db/models/processing_job.py

Savings job state for chunked, self-continuing processing.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class ProcessingJobStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


class ProcessingJob(Base, TimestampMixin):
    __tablename__ = "processing_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ProcessingJobStatus.PENDING,
        comment="pending, processing, completed, failed",
    )
    progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0-100, never decreases while processing",
    )
    current_step: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    current_chunk: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Index of the next unprocessed chunk",
    )
    file_name: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    file_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    total_items: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    processed_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    header_row_index: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        comment="Headers, column mapping and extraction quality",
    )
    report_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_processing_jobs_status", "status"),
        Index("ix_processing_jobs_created_at", "created_at"),
    )
