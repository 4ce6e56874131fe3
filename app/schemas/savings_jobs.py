"""
Schemas for savings job submission, status and item endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class SavingsJobAcceptedResponse(BaseModel):
    job_id: UUID
    status: str
    file_name: str
    created_at: datetime


class SavingsSummaryResponse(BaseModel):
    total_current_cost: float
    total_optimized_cost: float
    total_savings: float
    savings_percentage: float
    total_items: int
    matched_items: int
    items_with_savings: int
    details: dict[str, Any] = Field(default_factory=dict)


class SavingsJobStatusResponse(BaseModel):
    job_id: UUID
    status: str
    progress: int
    current_step: str | None = None
    current_chunk: int
    file_name: str
    total_items: int | None = None
    processed_items: int
    header_row_index: int | None = None
    report_url: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] | None = None
    summary: SavingsSummaryResponse | None = None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class SavingsJobListResponse(BaseModel):
    jobs: list[SavingsJobStatusResponse] = Field(default_factory=list)


class LineItemResponse(BaseModel):
    row_number: int
    raw_product_name: str
    raw_sku: str | None = None
    quantity: int
    unit_price: float
    uom: str | None = None
    matched_product_id: str | None = None
    matched_product: dict[str, Any] | None = None
    match_method: str
    match_score: float
    match_type: str | None = None
    price_source: str | None = None
    current_total: float | None = None
    recommendation_type: str | None = None
    recommendation: dict[str, Any] | None = None
    savings: float | None = None
    environmental: dict[str, Any] | None = None


class LineItemListResponse(BaseModel):
    job_id: UUID
    offset: int
    items: list[LineItemResponse] = Field(default_factory=list)


class ChunkAcceptedResponse(BaseModel):
    job_id: UUID
    chunk_index: int
    status: str
