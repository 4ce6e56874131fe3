"""
matching/ai_assist.py

LLM-assisted matching tier. The model extracts structured attributes from
the raw description, the catalog is searched with the refined query and
candidates are re-ranked by attribute agreement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from llm_extraction.adapter import BaseLLMAdapter
from llm_extraction.prompt_builder import AttributePromptBuilder
from llm_extraction.retry import extract_with_retry
from llm_extraction.schema import ProductAttributes
from matching.base import CatalogLookup
from matching.types import CatalogProduct

logger = logging.getLogger(__name__)

BASE_SCORE = 0.65
BRAND_BONUS = 0.15
MODEL_BONUS = 0.15
COLOR_BONUS = 0.05


@dataclass(frozen=True)
class AISuggestion:
    product: CatalogProduct
    score: float
    query: str
    attributes: ProductAttributes


def score_candidate(attributes: ProductAttributes, product: CatalogProduct, *, cap: float) -> float:
    """
    Attribute agreement score for one candidate, never above ``cap``.
    """

    score = BASE_SCORE
    if attributes.brand and product.brand and attributes.brand.lower() in product.brand.lower():
        score += BRAND_BONUS
    if attributes.model:
        model = attributes.model.lower()
        haystacks = (product.model or "", product.sku or "")
        if any(model in value.lower() for value in haystacks if value):
            score += MODEL_BONUS
    if attributes.color and product.color_type and product.color_type.lower() == attributes.color.lower():
        score += COLOR_BONUS
    return min(score, cap)


class AIAttributeMatcher:
    """
    Optional tier; only constructed when AI matching is enabled.
    """

    def __init__(
        self,
        *,
        adapter: BaseLLMAdapter,
        prompt_builder: AttributePromptBuilder | None = None,
        max_retries: int = 2,
        max_score: float = 0.95,
        candidate_limit: int = 5,
    ) -> None:
        self._adapter = adapter
        self._prompt_builder = prompt_builder or AttributePromptBuilder()
        self._max_retries = max_retries
        self._max_score = min(max_score, 0.99)
        self._candidate_limit = candidate_limit

    def suggest(
        self,
        *,
        catalog: CatalogLookup,
        description: str,
        sku: str | None = None,
    ) -> AISuggestion | None:
        prompt = self._prompt_builder.build_prompt(description, sku)
        attributes = extract_with_retry(self._adapter, prompt, max_retries=self._max_retries)
        query = attributes.search_query or " ".join(
            part for part in (attributes.brand, attributes.model, attributes.color) if part
        )
        hits = catalog.text_search(query, limit=self._candidate_limit)
        if not hits:
            logger.info("AI-assisted search returned no candidates query=%r", query)
            return None

        best: AISuggestion | None = None
        for hit in hits:
            score = score_candidate(attributes, hit.product, cap=self._max_score)
            if best is None or score > best.score:
                best = AISuggestion(product=hit.product, score=score, query=query, attributes=attributes)
        return best
