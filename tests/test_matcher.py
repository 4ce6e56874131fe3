"""
tests/test_matcher.py

Tier-by-tier behavior of the product matching cascade.
"""

from __future__ import annotations

import pytest

from app.config import MatchingSettings
from llm_extraction.adapter import MockLLMAdapter
from matching.ai_assist import AIAttributeMatcher
from matching.matcher import ProductMatcher
from matching.memory_catalog import InMemoryCatalog
from matching.normalization import overlap_score, sku_variants, strip_vendor_prefix, token_overlap, tokenize
from matching.types import CatalogProduct, MatchMethod, RawLineItem


class FakeEmbeddingProvider:
    def __init__(self, vector: list[float]) -> None:
        self.vector = vector
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vector)


class FailingSearchCatalog(InMemoryCatalog):
    def text_search(self, query, *, limit=10):
        raise RuntimeError("search down")


def _item(name: str, *skus: str, row_number: int = 1) -> RawLineItem:
    return RawLineItem(row_number=row_number, product_name=name, sku_candidates=tuple(skus))


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_vendor_prefixes_are_stripped(self) -> None:
        assert strip_vendor_prefix("M-HEW-CF258A") == "CF258A"
        assert strip_vendor_prefix("cf-258a") == "CF258A"

    def test_variants_include_stripped_form_once(self) -> None:
        assert sku_variants("M-HEW-CF258A") == ("MHEWCF258A", "CF258A")
        assert sku_variants("CF 258A") == ("CF258A",)
        assert sku_variants("  ") == ()

    def test_tokenize_drops_single_characters_and_caps_length(self) -> None:
        assert tokenize("HP 64 - Black, Ink & Cartridge x") == ["HP", "64", "BLACK", "INK", "CARTRIDGE"]
        assert len(tokenize("a1 b2 c3 d4 e5 f6 g7 h8 i9 j10")) == 8

    def test_overlap_score_stays_in_band(self) -> None:
        assert token_overlap(["HP", "TONER"], "HP 58A Black Toner") == 1.0
        assert overlap_score(0.0) == 0.70
        assert overlap_score(1.0) == pytest.approx(0.95)
        assert overlap_score(0.5) == pytest.approx(0.825)


# ---------------------------------------------------------------------------
# SKU tiers
# ---------------------------------------------------------------------------


class TestSkuTiers:
    def test_exact_sku_is_case_insensitive_and_returns_immediately(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("Toner", "cf258a"))

        assert result.method == MatchMethod.EXACT_SKU
        assert result.score == 1.0
        assert result.product.id == "hp58a"
        assert [attempt.method for attempt in result.attempts] == [MatchMethod.EXACT_SKU]
        assert result.attempts[0].value == "cf258a"

    def test_fuzzy_sku_ignores_separators(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("Toner", "CF-258A"))

        assert result.method == MatchMethod.FUZZY_SKU
        assert result.score == 0.95
        assert result.product.id == "hp58a"
        assert result.attempts[0].method == MatchMethod.EXACT_SKU
        assert result.attempts[0].score == 0.0

    def test_fuzzy_sku_strips_vendor_prefix(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("Toner", "M-HEW-CF258A"))

        assert result.method == MatchMethod.FUZZY_SKU
        assert result.score == 0.95
        assert result.product.id == "hp58a"
        fuzzy_values = [a.value for a in result.attempts if a.method == MatchMethod.FUZZY_SKU]
        assert fuzzy_values == ["MHEWCF258A", "CF258A"]

    def test_unknown_sku_and_description_fall_through_every_tier(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("Mystery Desk Widget", "ZZ999"))

        assert result.method == MatchMethod.NONE
        assert result.product is None
        assert result.score == 0.0
        assert [a.method for a in result.attempts] == [
            MatchMethod.EXACT_SKU,
            MatchMethod.FUZZY_SKU,
            MatchMethod.COMBINED,
            MatchMethod.FULL_TEXT,
        ]

    def test_compact_and_separated_sku_resolve_to_same_product(self) -> None:
        toner = CatalogProduct(
            id="tn730",
            sku="TN730",
            product_name="Brother TN730 Black Toner Cartridge",
            brand="Brother",
            model="TN730",
            category="toner_cartridge",
            color_type="black",
            page_yield=1200,
            reference_price=62.99,
        )
        matcher = ProductMatcher(catalog=InMemoryCatalog([toner]))

        compact = matcher.match(_item("Brother Toner", "TN730", row_number=1))
        separated = matcher.match(_item("Brother Toner", "tn-730", row_number=2))

        assert (compact.method, compact.score, compact.product.id) == (MatchMethod.EXACT_SKU, 1.0, "tn730")
        assert (separated.method, separated.score, separated.product.id) == (MatchMethod.FUZZY_SKU, 0.95, "tn730")


# ---------------------------------------------------------------------------
# Description tiers
# ---------------------------------------------------------------------------


class TestDescriptionTiers:
    def test_full_text_match_on_description(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("HP 58A Black Toner Cartridge"))

        assert result.method == MatchMethod.FULL_TEXT
        assert result.product.id == "hp58a"
        assert result.score == pytest.approx(0.95)
        assert result.score < 1.0

    def test_semantic_tier_caps_similarity(self, products) -> None:
        catalog = InMemoryCatalog(products, embeddings={"hp64-xl": [1.0, 0.0, 0.0]})
        provider = FakeEmbeddingProvider([1.0, 0.0, 0.0])
        matcher = ProductMatcher(catalog=catalog, embedding_provider=provider)

        result = matcher.match(_item("Cartucho tinta negra XL"))

        assert result.method == MatchMethod.SEMANTIC
        assert result.product.id == "hp64-xl"
        assert result.score == 0.99
        assert provider.calls == ["Cartucho tinta negra XL"]

    def test_semantic_tier_respects_should_continue(self, products) -> None:
        catalog = InMemoryCatalog(products, embeddings={"hp64-xl": [1.0, 0.0, 0.0]})
        provider = FakeEmbeddingProvider([1.0, 0.0, 0.0])
        matcher = ProductMatcher(catalog=catalog, embedding_provider=provider)

        result = matcher.match(_item("Cartucho tinta negra XL"), should_continue=lambda: False)

        assert result.method == MatchMethod.NONE
        assert provider.calls == []

    def test_short_description_skips_text_tiers(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("HP"))

        assert result.method == MatchMethod.NONE
        assert result.attempts == ()

    def test_one_shared_word_is_not_a_text_match(self, catalog) -> None:
        result = ProductMatcher(catalog=catalog).match(_item("Swingline Black Heavy Duty Stapler"))

        assert result.method == MatchMethod.NONE
        assert result.product is None
        assert result.score == 0.0
        full_text = [a for a in result.attempts if a.method == MatchMethod.FULL_TEXT]
        assert full_text[0].score == 0.0
        assert full_text[0].product_id is None

    def test_text_search_requires_every_token(self, catalog) -> None:
        assert catalog.text_search("Swingline Black Stapler") == []
        assert [hit.product.id for hit in catalog.text_search("HP Black Ink")] == ["hp64-std", "hp64-xl"]
        assert [hit.product.id for hit in catalog.text_search("HP 64 Black Ink")] == ["hp64-std"]

    def test_repeated_matching_is_identical(self, catalog) -> None:
        matcher = ProductMatcher(catalog=catalog)
        items = [
            _item("Toner", "CF-258A", row_number=1),
            _item("HP 58A Black Toner Cartridge", row_number=2),
            _item("Mystery Desk Widget", "ZZ999", row_number=3),
        ]

        first = [matcher.match(item) for item in items]
        second = [matcher.match(item) for item in items]

        def outcome(result):
            return result.method, result.score, result.product.id if result.product else None

        assert [outcome(r) for r in first] == [outcome(r) for r in second]
        assert [r.attempts for r in first] == [r.attempts for r in second]


# ---------------------------------------------------------------------------
# AI-assisted tier
# ---------------------------------------------------------------------------


class TestAITier:
    def test_ai_suggestion_is_capped(self, catalog) -> None:
        adapter = MockLLMAdapter()
        matcher = ProductMatcher(
            catalog=catalog,
            settings=MatchingSettings(ai_enabled=True),
            ai_matcher=AIAttributeMatcher(adapter=adapter),
        )

        result = matcher.match(_item("Cartucho tinta negra"))

        assert result.method == MatchMethod.AI_SUGGESTED
        assert result.product.id == "hp64-std"
        assert result.score == 0.95
        assert result.attempts[-1].value == "HP 64 Black Ink"
        assert len(adapter.prompts) == 1
        assert 'Customer Product: "Cartucho tinta negra"' in adapter.prompts[0]

    def test_ai_tier_is_ignored_when_disabled(self, catalog) -> None:
        adapter = MockLLMAdapter()
        matcher = ProductMatcher(catalog=catalog, ai_matcher=AIAttributeMatcher(adapter=adapter))

        result = matcher.match(_item("Cartucho tinta negra"))

        assert result.method == MatchMethod.NONE
        assert adapter.prompts == []

    def test_ai_query_sharing_one_word_finds_nothing(self, catalog) -> None:
        adapter = MockLLMAdapter(response={"brand": "Swingline", "search_query": "Swingline Black Stapler"})
        matcher = ProductMatcher(
            catalog=catalog,
            settings=MatchingSettings(ai_enabled=True),
            ai_matcher=AIAttributeMatcher(adapter=adapter),
        )

        result = matcher.match(_item("Heavy duty stapler, black"))

        assert result.method == MatchMethod.NONE
        assert result.product is None
        assert len(adapter.prompts) == 1


# ---------------------------------------------------------------------------
# Failures and batches
# ---------------------------------------------------------------------------


class TestFailuresAndBatches:
    def test_failing_tier_is_recorded_and_cascade_continues(self, products) -> None:
        matcher = ProductMatcher(catalog=FailingSearchCatalog(products))

        result = matcher.match(_item("Mystery Desk Widget"))

        assert result.method == MatchMethod.NONE
        errors = [a for a in result.attempts if a.method == MatchMethod.ERROR]
        assert len(errors) == 1
        assert errors[0].error == "RuntimeError: search down"
        assert errors[0].value == "full_text:Mystery Desk Widget"
        assert errors[0].score == 0.0

    def test_match_batch_preserves_input_order(self, catalog) -> None:
        items = [
            _item("Toner", "CF258A", row_number=1),
            _item("Mystery Desk Widget", row_number=2),
            _item("Ink", "N9J90AN", row_number=3),
        ]

        results = ProductMatcher(catalog=catalog).match_batch(items, max_workers=3)

        assert [r.item.row_number for r in results] == [1, 2, 3]
        assert [r.product.id if r.product else None for r in results] == ["hp58a", None, "hp64-std"]

    def test_empty_batch(self, catalog) -> None:
        assert ProductMatcher(catalog=catalog).match_batch([]) == []
