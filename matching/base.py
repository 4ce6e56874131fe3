"""
matching/base.py

Collaborator contracts consumed by the matching cascade and the savings
optimizer. The matcher never touches a database handle directly; callers
inject an implementation of these protocols.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from matching.types import CatalogProduct, RankedProduct


class EmbeddingError(RuntimeError):
    """Raised when an embedding cannot be produced after retries."""


class CatalogLookup(Protocol):
    """Read-only, idempotent queries against the master product catalog."""

    def exact_lookup(self, sku_candidates: Sequence[str]) -> CatalogProduct | None:
        """Return the first active product whose SKU namespaces equal a candidate."""
        ...

    def fuzzy_lookup(self, sku: str) -> list[CatalogProduct]:
        """Return active products whose SKU namespaces contain the normalized value."""
        ...

    def text_search(self, query: str, *, limit: int = 10) -> list[RankedProduct]:
        """Return active products containing every query token, ranked by relevance."""
        ...

    def vector_search(
        self,
        embedding: Sequence[float],
        *,
        limit: int = 1,
        min_similarity: float = 0.0,
    ) -> list[RankedProduct]:
        """Return nearest neighbours with cosine similarity as the score."""
        ...

    def family_lookup(
        self,
        family_series: str,
        color: str | None,
        min_yield_class: str | None,
    ) -> list[CatalogProduct]:
        """Return active products in a family with yield class at or above the minimum."""
        ...


class EmbeddingProvider(Protocol):
    """Side-effect free text embedding."""

    def embed(self, text: str) -> list[float]:
        ...
