"""
app/schemas package marker.
"""

from app.schemas.savings_jobs import (
    ChunkAcceptedResponse,
    LineItemListResponse,
    LineItemResponse,
    SavingsJobAcceptedResponse,
    SavingsJobListResponse,
    SavingsJobStatusResponse,
    SavingsSummaryResponse,
)

__all__ = [
    "ChunkAcceptedResponse",
    "LineItemListResponse",
    "LineItemResponse",
    "SavingsJobAcceptedResponse",
    "SavingsJobListResponse",
    "SavingsJobStatusResponse",
    "SavingsSummaryResponse",
]
