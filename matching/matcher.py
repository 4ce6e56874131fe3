"""
matching/matcher.py

Six-tier product matching cascade.

Tiers, in order:
    1. exact SKU          score 1.0, returns immediately
    2. fuzzy SKU          0.95 normalized equality / 0.85 substring, returns at >= accept
    3. combined           SKU + description free-text, only when nothing matched yet
    4. full text          description tokens, only while best < full_text_entry_below
    5. semantic           embedding nearest neighbour, only while best < semantic_entry_below
    6. AI-assisted        optional, only while best < ai_entry_below

Every tier writes to the attempt log. A tier that raises is recorded as an
``error`` attempt with score 0 and the cascade moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TypeVar

from app.config import MatchingSettings
from matching.ai_assist import AIAttributeMatcher
from matching.base import CatalogLookup, EmbeddingProvider
from matching.normalization import normalize_sku, overlap_score, sku_variants, token_overlap, tokenize
from matching.types import CatalogProduct, MatchAttempt, MatchMethod, MatchResult, RankedProduct, RawLineItem

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

EXACT_SCORE = 1.0
# Only exact SKU equality may reach 1.0.
MAX_NON_EXACT_SCORE = 0.99
MIN_DESCRIPTION_LENGTH = 3


@dataclass(frozen=True)
class _Candidate:
    product: CatalogProduct
    score: float
    method: str


def _product_text(product: CatalogProduct, *, include_sku: bool = False) -> str:
    parts = [product.product_name, product.brand, product.model]
    if include_sku:
        parts.extend(product.namespace_skus())
    return " ".join(part for part in parts if part)


class ProductMatcher:
    """
    Matches raw line items against an injected catalog.

    The matcher holds no per-item state, so one instance may serve
    concurrent ``match`` calls as long as the collaborators are thread-safe.
    """

    def __init__(
        self,
        *,
        catalog: CatalogLookup,
        settings: MatchingSettings | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        ai_matcher: AIAttributeMatcher | None = None,
    ) -> None:
        self._catalog = catalog
        self._settings = settings or MatchingSettings()
        self._embedding_provider = embedding_provider
        self._ai_matcher = ai_matcher if self._settings.ai_enabled else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def match(
        self,
        item: RawLineItem,
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> MatchResult:
        """
        Run the cascade for one item and return the best candidate found.

        ``should_continue`` is consulted before the expensive tiers
        (embedding and LLM calls) so a cancelled job stops spending.
        """

        attempts: list[MatchAttempt] = []
        try:
            return self._run_cascade(item, attempts, should_continue)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Matching failed row=%s name=%r", item.row_number, item.product_name)
            attempts.append(
                MatchAttempt(
                    method=MatchMethod.ERROR,
                    value=item.product_name,
                    score=0.0,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
            return MatchResult(
                item=item,
                product=None,
                score=0.0,
                method=MatchMethod.ERROR,
                attempts=tuple(attempts),
            )

    def match_batch(
        self,
        items: Sequence[RawLineItem],
        *,
        max_workers: int | None = None,
        should_continue: Callable[[], bool] | None = None,
    ) -> list[MatchResult]:
        """
        Match one batch concurrently; results keep the input order.
        """

        if not items:
            return []
        workers = max(1, min(max_workers or self._settings.batch_size, len(items)))
        if workers == 1:
            return [self.match(item, should_continue=should_continue) for item in items]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="matcher") as pool:
            return list(pool.map(lambda item: self.match(item, should_continue=should_continue), items))

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def _run_cascade(
        self,
        item: RawLineItem,
        attempts: list[MatchAttempt],
        should_continue: Callable[[], bool] | None,
    ) -> MatchResult:
        settings = self._settings
        description = (item.product_name or "").strip()
        has_description = len(description) >= MIN_DESCRIPTION_LENGTH
        best: _Candidate | None = None

        def finish() -> MatchResult:
            if best is None:
                return MatchResult(
                    item=item,
                    product=None,
                    score=0.0,
                    method=MatchMethod.NONE,
                    attempts=tuple(attempts),
                )
            return MatchResult(
                item=item,
                product=best.product,
                score=best.score,
                method=best.method,
                attempts=tuple(attempts),
            )

        def best_score() -> float:
            return best.score if best is not None else 0.0

        # Tier 1: exact SKU
        if item.sku_candidates:
            logged = len(attempts)
            exact = self._guarded(
                attempts,
                MatchMethod.EXACT_SKU,
                ", ".join(item.sku_candidates),
                lambda: self._catalog.exact_lookup(list(item.sku_candidates)),
            )
            if exact is not None:
                attempts.append(
                    MatchAttempt(
                        method=MatchMethod.EXACT_SKU,
                        value=self._matched_candidate(item.sku_candidates, exact),
                        score=EXACT_SCORE,
                        product_id=exact.id,
                    )
                )
                best = _Candidate(exact, EXACT_SCORE, MatchMethod.EXACT_SKU)
                return finish()
            if len(attempts) == logged:
                attempts.append(MatchAttempt(method=MatchMethod.EXACT_SKU, value=", ".join(item.sku_candidates), score=0.0))

        # Tier 2: fuzzy SKU
        for candidate in item.sku_candidates:
            for variant in sku_variants(candidate):
                fuzzy = self._fuzzy_candidate(attempts, variant)
                if fuzzy is not None and fuzzy.score > best_score():
                    best = fuzzy
                if best is not None and best.score >= settings.fuzzy_accept_score:
                    return finish()

        # Tier 3: combined SKU + description
        if best is None and has_description and item.sku_candidates:
            query = f"{item.sku_candidates[0]} {description}"
            combined = self._text_candidate(attempts, MatchMethod.COMBINED, query, include_sku=True)
            if combined is not None and combined.score > best_score():
                best = combined

        # Tier 4: full text
        if best_score() < settings.full_text_entry_below and has_description:
            tokens = tokenize(description)
            if tokens:
                full_text = self._text_candidate(attempts, MatchMethod.FULL_TEXT, " ".join(tokens))
                if full_text is not None and full_text.score > best_score():
                    best = full_text

        # Tier 5: semantic
        if (
            best_score() < settings.semantic_entry_below
            and has_description
            and self._embedding_provider is not None
            and self._may_continue(should_continue)
        ):
            semantic = self._semantic_candidate(attempts, description)
            if semantic is not None and semantic.score > best_score():
                best = semantic

        # Tier 6: AI-assisted
        if (
            self._ai_matcher is not None
            and best_score() < settings.ai_entry_below
            and has_description
            and self._may_continue(should_continue)
        ):
            ai_candidate = self._ai_candidate(attempts, description, item.primary_sku)
            if ai_candidate is not None and ai_candidate.score > best_score():
                best = ai_candidate

        return finish()

    # ------------------------------------------------------------------
    # Tier helpers
    # ------------------------------------------------------------------

    def _fuzzy_candidate(self, attempts: list[MatchAttempt], variant: str) -> _Candidate | None:
        hits = self._guarded(attempts, MatchMethod.FUZZY_SKU, variant, lambda: self._catalog.fuzzy_lookup(variant))
        if hits is None:
            return None
        if not hits:
            attempts.append(MatchAttempt(method=MatchMethod.FUZZY_SKU, value=variant, score=0.0))
            return None

        chosen, score = hits[0], self._settings.fuzzy_partial_score
        for product in hits:
            if any(normalize_sku(value) == variant for value in product.namespace_skus()):
                chosen, score = product, self._settings.fuzzy_exact_score
                break
        attempts.append(MatchAttempt(method=MatchMethod.FUZZY_SKU, value=variant, score=score, product_id=chosen.id))
        return _Candidate(chosen, score, MatchMethod.FUZZY_SKU)

    def _text_candidate(
        self,
        attempts: list[MatchAttempt],
        method: str,
        query: str,
        *,
        include_sku: bool = False,
    ) -> _Candidate | None:
        hits: list[RankedProduct] | None = self._guarded(
            attempts,
            method,
            query,
            lambda: self._catalog.text_search(query, limit=self._settings.search_limit),
        )
        if hits is None:
            return None
        if not hits:
            attempts.append(MatchAttempt(method=method, value=query, score=0.0))
            return None

        query_tokens = tokenize(query)
        chosen = hits[0].product
        chosen_overlap = token_overlap(query_tokens, _product_text(chosen, include_sku=include_sku))
        for hit in hits[1:]:
            overlap = token_overlap(query_tokens, _product_text(hit.product, include_sku=include_sku))
            if overlap > chosen_overlap:
                chosen, chosen_overlap = hit.product, overlap
        score = overlap_score(
            chosen_overlap,
            floor=self._settings.full_text_min_score,
            ceiling=self._settings.full_text_max_score,
        )
        attempts.append(MatchAttempt(method=method, value=query, score=score, product_id=chosen.id))
        return _Candidate(chosen, score, method)

    def _semantic_candidate(self, attempts: list[MatchAttempt], description: str) -> _Candidate | None:
        provider = self._embedding_provider
        if provider is None:
            return None
        min_similarity = self._settings.semantic_min_similarity

        def search() -> list[RankedProduct]:
            embedding = provider.embed(description)
            return self._catalog.vector_search(embedding, limit=1, min_similarity=min_similarity)

        hits = self._guarded(attempts, MatchMethod.SEMANTIC, description, search)
        if hits is None:
            return None
        qualifying = [hit for hit in hits if hit.score >= min_similarity]
        if not qualifying:
            attempts.append(MatchAttempt(method=MatchMethod.SEMANTIC, value=description, score=0.0))
            return None
        top = qualifying[0]
        score = min(top.score, MAX_NON_EXACT_SCORE)
        attempts.append(
            MatchAttempt(method=MatchMethod.SEMANTIC, value=description, score=score, product_id=top.product.id)
        )
        return _Candidate(top.product, score, MatchMethod.SEMANTIC)

    def _ai_candidate(self, attempts: list[MatchAttempt], description: str, sku: str | None) -> _Candidate | None:
        ai_matcher = self._ai_matcher
        if ai_matcher is None:
            return None
        logged = len(attempts)
        suggestion = self._guarded(
            attempts,
            MatchMethod.AI_SUGGESTED,
            description,
            lambda: ai_matcher.suggest(catalog=self._catalog, description=description, sku=sku),
        )
        if suggestion is None:
            if len(attempts) == logged:
                attempts.append(MatchAttempt(method=MatchMethod.AI_SUGGESTED, value=description, score=0.0))
            return None
        score = min(suggestion.score, self._settings.ai_max_score)
        attempts.append(
            MatchAttempt(
                method=MatchMethod.AI_SUGGESTED,
                value=suggestion.query,
                score=score,
                product_id=suggestion.product.id,
            )
        )
        return _Candidate(suggestion.product, score, MatchMethod.AI_SUGGESTED)

    def _guarded(
        self,
        attempts: list[MatchAttempt],
        method: str,
        value: str,
        call: Callable[[], _T],
    ) -> _T | None:
        """
        Run one collaborator call; failures become an ``error`` attempt.
        """

        try:
            return call()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Match tier failed method=%s value=%r error=%s", method, value, exc)
            attempts.append(
                MatchAttempt(
                    method=MatchMethod.ERROR,
                    value=f"{method}:{value}",
                    score=0.0,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
            return None

    @staticmethod
    def _may_continue(should_continue: Callable[[], bool] | None) -> bool:
        return should_continue is None or should_continue()

    @staticmethod
    def _matched_candidate(candidates: Sequence[str], product: CatalogProduct) -> str:
        skus = {value.strip().upper() for value in product.namespace_skus()}
        for candidate in candidates:
            if candidate.strip().upper() in skus:
                return candidate
        return candidates[0]
