"""
matching/memory_catalog.py

In-memory implementation of the CatalogLookup contract. Used for tests,
local dry runs and small catalogs loaded from a file.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from matching.normalization import normalize_sku, token_overlap, tokenize
from matching.types import CatalogProduct, RankedProduct, yield_rank


class InMemoryCatalog:
    """
    Catalog held in process memory.

    Search semantics mirror the SQL lookup: case-insensitive namespace
    equality, separator-insensitive substring search, text search that
    requires all query tokens and cosine similarity over optional product
    embeddings.
    """

    def __init__(
        self,
        products: Iterable[CatalogProduct],
        *,
        embeddings: Mapping[str, Sequence[float]] | None = None,
    ) -> None:
        self._products: list[CatalogProduct] = list(products)
        self._embeddings: dict[str, np.ndarray] = {
            product_id: np.asarray(vector, dtype=float)
            for product_id, vector in (embeddings or {}).items()
        }

    @property
    def products(self) -> tuple[CatalogProduct, ...]:
        return tuple(self._products)

    def _active(self) -> list[CatalogProduct]:
        return [product for product in self._products if product.active]

    def exact_lookup(self, sku_candidates: Sequence[str]) -> CatalogProduct | None:
        for candidate in sku_candidates:
            wanted = candidate.strip().upper()
            if not wanted:
                continue
            for product in self._active():
                if any(value.strip().upper() == wanted for value in product.namespace_skus()):
                    return product
        return None

    def fuzzy_lookup(self, sku: str) -> list[CatalogProduct]:
        wanted = normalize_sku(sku)
        if not wanted:
            return []
        hits = [
            product
            for product in self._active()
            if any(wanted in normalize_sku(value) for value in product.namespace_skus())
        ]
        return hits[:5]

    def text_search(self, query: str, *, limit: int = 10) -> list[RankedProduct]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []
        hits = [
            RankedProduct(product=product, score=1.0)
            for product in self._active()
            if token_overlap(query_tokens, _searchable_text(product)) == 1.0
        ]
        return hits[: max(1, limit)]

    def vector_search(
        self,
        embedding: Sequence[float],
        *,
        limit: int = 1,
        min_similarity: float = 0.0,
    ) -> list[RankedProduct]:
        query = np.asarray(embedding, dtype=float)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []
        by_id = {product.id: product for product in self._active()}
        ranked: list[RankedProduct] = []
        for product_id, vector in self._embeddings.items():
            product = by_id.get(product_id)
            vector_norm = float(np.linalg.norm(vector))
            if product is None or vector_norm == 0.0 or vector.shape != query.shape:
                continue
            similarity = float(np.dot(query, vector) / (query_norm * vector_norm))
            if similarity >= min_similarity:
                ranked.append(RankedProduct(product=product, score=similarity))
        ranked.sort(key=lambda hit: hit.score, reverse=True)
        return ranked[: max(1, limit)]

    def family_lookup(
        self,
        family_series: str,
        color: str | None,
        min_yield_class: str | None,
    ) -> list[CatalogProduct]:
        family = family_series.strip().upper()
        min_rank = yield_rank(min_yield_class)
        return [
            product
            for product in self._active()
            if (product.family_series or "").strip().upper() == family
            and (product.color_type or None) == (color or None)
            and yield_rank(product.size_category) >= min_rank
        ]


def _searchable_text(product: CatalogProduct) -> str:
    return " ".join(part for part in (product.product_name, product.brand, product.model, product.sku) if part)
