"""
app/domain/quality.py

Quality reports for extraction and matching stages of a savings job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class QualityGrade:
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


@dataclass(frozen=True)
class ExtractionQuality:
    """
    Coverage of names, SKUs and prices across extracted items.
    """

    grade: str
    total_items: int
    items_with_name: int
    items_with_sku: int
    items_with_price: int
    average_confidence: float
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "grade": self.grade,
            "total_items": self.total_items,
            "items_with_name": self.items_with_name,
            "items_with_sku": self.items_with_sku,
            "items_with_price": self.items_with_price,
            "average_confidence": self.average_confidence,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class DataRequirementsReport:
    """
    Completeness of the identifier and quantity fields needed for savings.
    """

    total_items: int
    items_with_complete_data: int
    missing_identifier: int
    missing_price: int
    missing_quantity: int

    @property
    def percent_complete(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.items_with_complete_data / self.total_items * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "items_with_complete_data": self.items_with_complete_data,
            "missing_identifier": self.missing_identifier,
            "missing_price": self.missing_price,
            "missing_quantity": self.missing_quantity,
            "percent_complete": round(self.percent_complete, 2),
        }


@dataclass(frozen=True)
class MatchingQuality:
    """
    Match rate and confidence distribution over matched items.
    """

    grade: str
    total_items: int
    items_matched: int
    match_rate: float
    high_confidence: int
    medium_confidence: int
    low_confidence: int
    average_score: float
    method_counts: dict[str, int] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "grade": self.grade,
            "total_items": self.total_items,
            "items_matched": self.items_matched,
            "match_rate": self.match_rate,
            "high_confidence": self.high_confidence,
            "medium_confidence": self.medium_confidence,
            "low_confidence": self.low_confidence,
            "average_score": self.average_score,
            "method_counts": dict(self.method_counts),
            "warnings": list(self.warnings),
        }
