"""
savings/summary.py

Fold per-item analyses into the aggregate SavingsSummary and the payload
handed to report renderers.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from savings.environmental import combine
from savings.types import ItemAnalysis, MatchType, SavingsSummary

MAX_REPORTED_VALUE = 99_999_999.99


def _cap(value: float) -> float:
    return round(min(max(value, 0.0), MAX_REPORTED_VALUE), 2)


def build_summary(analyses: Sequence[ItemAnalysis]) -> SavingsSummary:
    """
    Aggregate cost, savings, counts and environmental totals.

    Items without an actionable recommendation contribute their current cost
    to both the current and the optimized totals, so savings only come from
    recommended items.

    Args:
        analyses: One entry per line item in the job, matched or not.

    Returns:
        SavingsSummary with monetary values rounded to cents and capped.
    """

    total_current = sum(analysis.current_total for analysis in analyses)
    total_optimized = sum(analysis.optimized_total for analysis in analyses)
    total_savings = max(0.0, total_current - total_optimized)
    percentage = (total_savings / total_current * 100) if total_current > 0 else 0.0

    return SavingsSummary(
        total_current_cost=_cap(total_current),
        total_optimized_cost=_cap(total_optimized),
        total_savings=_cap(total_savings),
        savings_percentage=round(min(percentage, 100.0), 2),
        total_items=len(analyses),
        matched_items=sum(1 for analysis in analyses if analysis.match.is_matched),
        items_with_savings=sum(1 for analysis in analyses if analysis.savings > 0),
        environmental=combine([analysis.environmental for analysis in analyses]),
        remanufactured_items=sum(1 for a in analyses if a.match_type == MatchType.REMANUFACTURED),
        oem_only_items=sum(1 for a in analyses if a.match_type == MatchType.OEM_ONLY),
        no_match_items=sum(1 for a in analyses if a.match_type == MatchType.NO_MATCH),
    )


def _item_payload(analysis: ItemAnalysis) -> dict[str, Any]:
    item = analysis.match.item
    product = analysis.match.product
    return {
        "row_number": item.row_number,
        "product_name": item.product_name,
        "sku": item.primary_sku,
        "quantity": item.quantity,
        "unit_price": analysis.price.amount if analysis.price else None,
        "price_source": analysis.price.source if analysis.price else None,
        "price_assumed": analysis.price.is_assumed if analysis.price else False,
        "current_total": analysis.current_total,
        "match_method": analysis.match.method,
        "match_score": analysis.match.score,
        "matched_product": product.to_dict() if product else None,
        "match_type": analysis.match_type,
        "recommendation": analysis.recommendation.to_dict(),
        "environmental": analysis.environmental.to_dict(),
    }


def build_report_payload(
    *,
    job_id: str,
    summary: SavingsSummary,
    analyses: Sequence[ItemAnalysis],
    company_name: str | None = None,
) -> dict[str, Any]:
    """JSON-serializable document consumed by ReportRenderer implementations."""
    recommended = [a for a in analyses if a.recommendation.is_actionable]
    recommended.sort(key=lambda a: a.savings, reverse=True)
    return {
        "job_id": job_id,
        "company_name": company_name,
        "summary": summary.to_dict(),
        "top_recommendations": [_item_payload(a) for a in recommended[:10]],
        "items": [_item_payload(a) for a in analyses],
    }
