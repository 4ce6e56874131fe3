"""
app/validators/extraction_validator.py

Quality gates applied to extracted line items and to match results.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Sequence

from app.domain.quality import DataRequirementsReport, ExtractionQuality, MatchingQuality, QualityGrade
from matching.types import MatchResult, RawLineItem

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MIN_COMPLETE_PERCENT = 50.0

INSUFFICIENT_DATA_MESSAGE = (
    "We're unable to calculate savings because your document is missing required information. "
    "Please upload a buy sheet, order invoice, quote, or item usage report that includes "
    "Item Name/SKU and Quantity for each product."
)
NO_ITEMS_MESSAGE = "No items extracted from document. Please upload a valid document with product data."


class InsufficientDataError(ValueError):
    """
    Raised when too few items carry an identifier and a positive quantity.
    """

    def __init__(self, message: str, report: DataRequirementsReport) -> None:
        super().__init__(message)
        self.report = report

    def to_dict(self) -> dict[str, object]:
        return {"message": str(self), "details": self.report.to_dict()}


def _has_name(item: RawLineItem) -> bool:
    return len(item.product_name.strip()) >= MIN_NAME_LENGTH


def _has_identifier(item: RawLineItem) -> bool:
    return _has_name(item) or bool(item.sku_candidates)


def validate_extraction(items: Sequence[RawLineItem]) -> ExtractionQuality:
    """
    Grade extraction coverage.

    Grades fall through in order: poor when fewer than 80% of items have a
    name, acceptable when SKU coverage is under 30% or price coverage under
    50%, good when mean confidence is under 0.6, otherwise excellent.
    """

    total = len(items)
    with_name = sum(1 for item in items if _has_name(item))
    with_sku = sum(1 for item in items if item.sku_candidates)
    with_price = sum(1 for item in items if item.unit_price > 0)
    confidence = sum(item.extraction_confidence for item in items) / total if total else 0.0

    warnings: list[str] = []
    if total == 0:
        grade = QualityGrade.POOR
        warnings.append("No items extracted from document")
    elif with_name < total * 0.80:
        grade = QualityGrade.POOR
        warnings.append(f"Only {with_name}/{total} items have product names")
    elif with_sku < total * 0.30:
        grade = QualityGrade.ACCEPTABLE
        warnings.append(f"Only {with_sku}/{total} items have SKU numbers")
    elif with_price < total * 0.50:
        grade = QualityGrade.ACCEPTABLE
        warnings.append(f"Only {with_price}/{total} items have pricing data")
    elif confidence < 0.60:
        grade = QualityGrade.GOOD
        warnings.append(f"Average extraction confidence is {confidence * 100:.0f}%")
    else:
        grade = QualityGrade.EXCELLENT

    logger.info(
        "Extraction quality grade=%s total=%s names=%s skus=%s prices=%s confidence=%.2f",
        grade,
        total,
        with_name,
        with_sku,
        with_price,
        confidence,
    )
    return ExtractionQuality(
        grade=grade,
        total_items=total,
        items_with_name=with_name,
        items_with_sku=with_sku,
        items_with_price=with_price,
        average_confidence=round(confidence, 4),
        warnings=tuple(warnings),
    )


def check_minimum_data_requirements(items: Sequence[RawLineItem]) -> DataRequirementsReport:
    return DataRequirementsReport(
        total_items=len(items),
        items_with_complete_data=sum(1 for item in items if _has_identifier(item) and item.quantity > 0),
        missing_identifier=sum(1 for item in items if not _has_identifier(item)),
        missing_price=sum(1 for item in items if item.unit_price <= 0),
        missing_quantity=sum(1 for item in items if item.quantity <= 0),
    )


def validate_minimum_data_requirements(items: Sequence[RawLineItem]) -> DataRequirementsReport:
    """
    Require at least half of the items to have an identifier and quantity > 0.

    Raises:
        InsufficientDataError: With a customer-facing message when the
            requirement is not met or no items were extracted.
    """

    report = check_minimum_data_requirements(items)
    if report.total_items == 0:
        raise InsufficientDataError(NO_ITEMS_MESSAGE, report)
    if report.percent_complete < MIN_COMPLETE_PERCENT:
        logger.warning(
            "Minimum data check failed complete=%s total=%s missing_identifier=%s missing_quantity=%s",
            report.items_with_complete_data,
            report.total_items,
            report.missing_identifier,
            report.missing_quantity,
        )
        raise InsufficientDataError(INSUFFICIENT_DATA_MESSAGE, report)
    return report


def validate_matching(results: Sequence[MatchResult]) -> MatchingQuality:
    """
    Grade match coverage: poor under 50% matched, acceptable under 75%,
    good when fewer than 60% of matches score at least 0.90.
    """

    total = len(results)
    matched = [result for result in results if result.is_matched]
    match_rate = len(matched) / total if total else 0.0
    high = sum(1 for result in matched if result.score >= 0.90)
    medium = sum(1 for result in matched if 0.70 <= result.score < 0.90)
    low = sum(1 for result in matched if 0 < result.score < 0.70)
    average = sum(result.score for result in matched) / len(matched) if matched else 0.0

    warnings: list[str] = []
    if match_rate < 0.50:
        grade = QualityGrade.POOR
        warnings.append(f"Low match rate: {match_rate * 100:.0f}%")
    elif match_rate < 0.75:
        grade = QualityGrade.ACCEPTABLE
        warnings.append(f"Match rate could be better: {match_rate * 100:.0f}%")
    elif high < len(matched) * 0.60:
        grade = QualityGrade.GOOD
        warnings.append(f"Only {high / len(matched) * 100:.0f}% high-confidence matches")
    else:
        grade = QualityGrade.EXCELLENT

    return MatchingQuality(
        grade=grade,
        total_items=total,
        items_matched=len(matched),
        match_rate=round(match_rate, 4),
        high_confidence=high,
        medium_confidence=medium,
        low_confidence=low,
        average_score=round(average, 4),
        method_counts=dict(Counter(result.method for result in results)),
        warnings=tuple(warnings),
    )
