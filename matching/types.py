"""
matching/types.py

Immutable value types shared by the ingestor, the matcher and the
savings optimizer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


class MatchMethod:
    EXACT_SKU = "exact_sku"
    FUZZY_SKU = "fuzzy_sku"
    COMBINED = "combined"
    FULL_TEXT = "full_text"
    SEMANTIC = "semantic"
    AI_SUGGESTED = "ai_suggested"
    NONE = "none"
    ERROR = "error"


class YieldClass:
    STANDARD = "standard"
    HIGH = "high"
    EXTRA_HIGH = "extra_high"
    SUPER_HIGH = "super_high"


YIELD_CLASS_RANK: dict[str, int] = {
    YieldClass.STANDARD: 1,
    YieldClass.HIGH: 2,
    YieldClass.EXTRA_HIGH: 3,
    YieldClass.SUPER_HIGH: 4,
}


def yield_rank(yield_class: str | None) -> int:
    """Rank a yield class on the ordered scale; unknown values rank as standard."""
    if not yield_class:
        return 1
    return YIELD_CLASS_RANK.get(yield_class.strip().lower(), 1)


@dataclass(frozen=True)
class SkuCandidates:
    """
    SKU values found on one row, grouped by namespace.
    """

    oem: tuple[str, ...] = ()
    wholesaler: tuple[str, ...] = ()
    staples: tuple[str, ...] = ()
    depot: tuple[str, ...] = ()
    generic: tuple[str, ...] = ()

    def ordered(self) -> tuple[str, ...]:
        """
        Flatten namespaces by priority, dropping blanks and case-insensitive repeats.
        """

        seen: set[str] = set()
        ordered: list[str] = []
        for group in (self.oem, self.wholesaler, self.staples, self.depot, self.generic):
            for value in group:
                cleaned = value.strip()
                key = cleaned.upper()
                if not cleaned or key in seen:
                    continue
                seen.add(key)
                ordered.append(cleaned)
        return tuple(ordered)


@dataclass(frozen=True)
class RawLineItem:
    """
    One purchase row extracted from an uploaded file.

    ``unit_price`` of 0 means the file did not state a usable price.
    """

    row_number: int
    product_name: str
    sku_candidates: tuple[str, ...] = ()
    quantity: int = 1
    unit_price: float = 0.0
    uom: str | None = None
    extraction_confidence: float = 0.0
    namespaces: SkuCandidates = field(default_factory=SkuCandidates)

    @property
    def primary_sku(self) -> str | None:
        return self.sku_candidates[0] if self.sku_candidates else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "product_name": self.product_name,
            "sku_candidates": list(self.sku_candidates),
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "uom": self.uom,
            "extraction_confidence": self.extraction_confidence,
        }


@dataclass(frozen=True)
class CatalogProduct:
    """
    Read-only view of one master catalog entry.
    """

    id: str
    sku: str
    product_name: str
    brand: str | None = None
    model: str | None = None
    category: str | None = None
    color_type: str | None = None
    size_category: str | None = None
    page_yield: int | None = None
    family_series: str | None = None
    compatibility_group: str | None = None
    oem_number: str | None = None
    wholesaler_sku: str | None = None
    staples_sku: str | None = None
    depot_sku: str | None = None
    reference_price: float | None = None
    list_price: float | None = None
    cost: float | None = None
    image_url: str | None = None
    active: bool = True

    def namespace_skus(self) -> tuple[str, ...]:
        """Every non-empty SKU this product can be addressed by."""
        values = (
            self.sku,
            self.oem_number,
            self.wholesaler_sku,
            self.staples_sku,
            self.depot_sku,
        )
        return tuple(value for value in values if value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogProduct:
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(frozen=True)
class RankedProduct:
    """
    Catalog hit returned by a search collaborator with its raw rank score.
    """

    product: CatalogProduct
    score: float


@dataclass(frozen=True)
class MatchAttempt:
    """
    One tier attempt recorded in the audit log.
    """

    method: str
    value: str
    score: float
    product_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "value": self.value,
            "score": self.score,
            "product_id": self.product_id,
            "error": self.error,
        }


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of the matching cascade for one line item.
    """

    item: RawLineItem
    product: CatalogProduct | None
    score: float
    method: str
    attempts: tuple[MatchAttempt, ...] = ()

    @property
    def is_matched(self) -> bool:
        return self.product is not None
