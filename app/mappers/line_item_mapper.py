"""
app/mappers/line_item_mapper.py

Conversion between matcher/optimizer value types and LineItemMatch rows.
"""

from __future__ import annotations

import uuid
from typing import Any

from db.models.line_item_match import LineItemMatch
from matching.types import CatalogProduct, MatchAttempt, MatchResult, RawLineItem, SkuCandidates
from savings.types import ItemAnalysis

MAX_DECIMAL = 99_999_999.99
MAX_QUANTITY = 2_147_483_647


def _cap_money(value: float) -> float:
    return round(min(max(value or 0.0, 0.0), MAX_DECIMAL), 2)


def _cap_score(value: float) -> float:
    return min(max(value or 0.0, 0.0), 1.0)


def _namespaces_to_dict(namespaces: SkuCandidates) -> dict[str, list[str]]:
    return {
        "oem": list(namespaces.oem),
        "wholesaler": list(namespaces.wholesaler),
        "staples": list(namespaces.staples),
        "depot": list(namespaces.depot),
        "generic": list(namespaces.generic),
    }


def match_result_to_record(job_id: uuid.UUID, result: MatchResult) -> LineItemMatch:
    """
    Build an unsaved LineItemMatch from a MatchResult.
    """

    item = result.item
    product = result.product
    return LineItemMatch(
        job_id=job_id,
        row_number=item.row_number,
        raw_product_name=item.product_name,
        raw_sku=item.primary_sku,
        sku_candidates={
            "ordered": list(item.sku_candidates),
            "namespaces": _namespaces_to_dict(item.namespaces),
        },
        quantity=min(max(item.quantity, 0), MAX_QUANTITY),
        unit_price=_cap_money(item.unit_price),
        uom=item.uom,
        extraction_confidence=_cap_score(item.extraction_confidence),
        matched_product_id=product.id if product else None,
        matched_product=product.to_dict() if product else None,
        match_method=result.method,
        match_score=_cap_score(result.score),
        match_attempts=[attempt.to_dict() for attempt in result.attempts],
    )


def record_to_match_result(record: LineItemMatch) -> MatchResult:
    """
    Rebuild the MatchResult persisted by an earlier chunk.
    """

    candidates: dict[str, Any] = record.sku_candidates or {}
    namespaces = candidates.get("namespaces") or {}
    item = RawLineItem(
        row_number=record.row_number,
        product_name=record.raw_product_name or "",
        sku_candidates=tuple(candidates.get("ordered") or ()),
        quantity=record.quantity,
        unit_price=float(record.unit_price or 0.0),
        uom=record.uom,
        extraction_confidence=float(record.extraction_confidence or 0.0),
        namespaces=SkuCandidates(
            oem=tuple(namespaces.get("oem") or ()),
            wholesaler=tuple(namespaces.get("wholesaler") or ()),
            staples=tuple(namespaces.get("staples") or ()),
            depot=tuple(namespaces.get("depot") or ()),
            generic=tuple(namespaces.get("generic") or ()),
        ),
    )
    product = CatalogProduct.from_dict(record.matched_product) if record.matched_product else None
    attempts = tuple(
        MatchAttempt(
            method=attempt.get("method", ""),
            value=attempt.get("value", ""),
            score=float(attempt.get("score") or 0.0),
            product_id=attempt.get("product_id"),
            error=attempt.get("error"),
        )
        for attempt in (record.match_attempts or [])
    )
    return MatchResult(
        item=item,
        product=product,
        score=float(record.match_score or 0.0),
        method=record.match_method,
        attempts=attempts,
    )


def apply_analysis(record: LineItemMatch, analysis: ItemAnalysis) -> None:
    """
    Copy optimizer output onto a persisted row.
    """

    recommendation = analysis.recommendation
    record.price_source = analysis.price.source if analysis.price else None
    record.resolved_unit_price = _cap_money(analysis.price.amount) if analysis.price else None
    record.current_total = _cap_money(analysis.current_total)
    record.recommendation_type = recommendation.type
    record.recommendation = recommendation.to_dict()
    record.savings = _cap_money(analysis.savings)
    record.match_type = analysis.match_type
    record.environmental = analysis.environmental.to_dict()


def record_to_dict(record: LineItemMatch) -> dict[str, Any]:
    """
    Flat, JSON-friendly view of a row for logging and API responses.
    """

    return {
        "row_number": record.row_number,
        "raw_product_name": record.raw_product_name,
        "raw_sku": record.raw_sku,
        "quantity": record.quantity,
        "unit_price": record.unit_price,
        "matched_product_id": record.matched_product_id,
        "match_method": record.match_method,
        "match_score": record.match_score,
        "recommendation_type": record.recommendation_type,
        "savings": record.savings,
        "match_type": record.match_type,
    }
