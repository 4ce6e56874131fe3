"""
PostgreSQL implementation of the matching CatalogLookup contract.

Each call opens its own short-lived session from the injected factory so the
matcher can run lookups from worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from db.models.master_product import MasterProduct
from matching.normalization import normalize_sku, tokenize
from matching.types import YIELD_CLASS_RANK, CatalogProduct, RankedProduct, yield_rank

logger = logging.getLogger(__name__)

FUZZY_LIMIT = 5
_SKU_SEPARATOR_PATTERN = r"[\s_-]"

_NAMESPACE_COLUMNS = (
    MasterProduct.sku,
    MasterProduct.oem_number,
    MasterProduct.wholesaler_sku,
    MasterProduct.staples_sku,
    MasterProduct.depot_sku,
)


def to_catalog_product(row: MasterProduct) -> CatalogProduct:
    return CatalogProduct(
        id=str(row.id),
        sku=row.sku,
        product_name=row.product_name,
        brand=row.brand,
        model=row.model,
        category=row.category,
        color_type=row.color_type,
        size_category=row.size_category,
        page_yield=row.page_yield,
        family_series=row.family_series,
        compatibility_group=row.compatibility_group,
        oem_number=row.oem_number,
        wholesaler_sku=row.wholesaler_sku,
        staples_sku=row.staples_sku,
        depot_sku=row.depot_sku,
        reference_price=row.reference_price,
        list_price=row.list_price,
        cost=row.cost,
        image_url=row.image_url,
        active=row.active,
    )


class SQLCatalogLookup:
    """
    Catalog queries over ``master_products``: ilike namespace matching,
    tsvector full-text search and pgvector cosine distance.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _fetch(self, stmt: Select[tuple[MasterProduct]]) -> list[CatalogProduct]:
        with self._session_factory() as session:
            return [to_catalog_product(row) for row in session.scalars(stmt).all()]

    @staticmethod
    def _active() -> Select[tuple[MasterProduct]]:
        return select(MasterProduct).where(MasterProduct.active.is_(True))

    def exact_lookup(self, sku_candidates: Sequence[str]) -> CatalogProduct | None:
        for candidate in sku_candidates:
            wanted = candidate.strip()
            if not wanted:
                continue
            escaped = wanted.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            stmt = (
                self._active()
                .where(or_(*(column.ilike(escaped, escape="\\") for column in _NAMESPACE_COLUMNS)))
                .order_by(MasterProduct.sku.asc())
                .limit(1)
            )
            hits = self._fetch(stmt)
            if hits:
                return hits[0]
        return None

    def fuzzy_lookup(self, sku: str) -> list[CatalogProduct]:
        wanted = normalize_sku(sku)
        if not wanted:
            return []
        pattern = f"%{wanted}%"
        conditions = [
            func.upper(func.regexp_replace(column, _SKU_SEPARATOR_PATTERN, "", "g")).like(pattern)
            for column in _NAMESPACE_COLUMNS
        ]
        stmt = self._active().where(or_(*conditions)).order_by(MasterProduct.sku.asc()).limit(FUZZY_LIMIT)
        return self._fetch(stmt)

    def text_search(self, query: str, *, limit: int = 10) -> list[RankedProduct]:
        tokens = tokenize(query)
        if not tokens:
            return []
        # every token must be present; tokenize() leaves only [A-Z0-9] so the terms need no quoting
        ts_query = func.to_tsquery("english", " & ".join(token.lower() for token in tokens))
        rank = func.ts_rank(MasterProduct.search_vector, ts_query)
        stmt = (
            select(MasterProduct, rank.label("rank"))
            .where(MasterProduct.active.is_(True))
            .where(MasterProduct.search_vector.op("@@")(ts_query))
            .order_by(rank.desc(), MasterProduct.sku.asc())
            .limit(max(1, limit))
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
            return [RankedProduct(product=to_catalog_product(row), score=float(score)) for row, score in rows]

    def vector_search(
        self,
        embedding: Sequence[float],
        *,
        limit: int = 1,
        min_similarity: float = 0.0,
    ) -> list[RankedProduct]:
        distance = MasterProduct.embedding.cosine_distance(list(embedding))
        stmt = (
            select(MasterProduct, distance.label("distance"))
            .where(MasterProduct.active.is_(True))
            .where(MasterProduct.embedding.is_not(None))
            .where(distance <= 1.0 - min_similarity)
            .order_by(distance.asc())
            .limit(max(1, limit))
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
            return [
                RankedProduct(product=to_catalog_product(row), score=1.0 - float(value))
                for row, value in rows
            ]

    def family_lookup(
        self,
        family_series: str,
        color: str | None,
        min_yield_class: str | None,
    ) -> list[CatalogProduct]:
        min_rank = yield_rank(min_yield_class)
        stmt = self._active().where(func.upper(MasterProduct.family_series) == family_series.strip().upper())
        if color:
            stmt = stmt.where(MasterProduct.color_type == color)
        else:
            stmt = stmt.where(MasterProduct.color_type.is_(None))
        if min_rank > 1:
            allowed = [name for name, rank in YIELD_CLASS_RANK.items() if rank >= min_rank]
            stmt = stmt.where(MasterProduct.size_category.in_(allowed))
        stmt = stmt.order_by(MasterProduct.page_yield.desc().nulls_last(), MasterProduct.sku.asc())
        products = self._fetch(stmt)
        logger.debug(
            "Family lookup family=%s color=%s min_yield=%s hits=%s",
            family_series,
            color,
            min_yield_class,
            len(products),
        )
        return products
