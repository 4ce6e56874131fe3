from __future__ import annotations

import unittest

from app.domain.quality import QualityGrade
from app.validators.extraction_validator import (
    INSUFFICIENT_DATA_MESSAGE,
    NO_ITEMS_MESSAGE,
    InsufficientDataError,
    validate_extraction,
    validate_matching,
    validate_minimum_data_requirements,
)
from matching.types import CatalogProduct, MatchMethod, MatchResult, RawLineItem

_PRODUCT = CatalogProduct(id="hp58a", sku="HP-CF258A", product_name="HP 58A Black Toner Cartridge")


def _item(
    name: str = "HP 58A Black Toner Cartridge",
    *,
    skus: tuple[str, ...] = ("CF258A",),
    quantity: int = 1,
    price: float = 99.0,
    confidence: float = 1.0,
) -> RawLineItem:
    return RawLineItem(
        row_number=1,
        product_name=name,
        sku_candidates=skus,
        quantity=quantity,
        unit_price=price,
        extraction_confidence=confidence,
    )


def _result(score: float | None, method: str = MatchMethod.EXACT_SKU) -> MatchResult:
    if score is None:
        return MatchResult(item=_item(), product=None, score=0.0, method=MatchMethod.NONE)
    return MatchResult(item=_item(), product=_PRODUCT, score=score, method=method)


class TestValidateExtraction(unittest.TestCase):
    def test_complete_items_grade_excellent(self) -> None:
        quality = validate_extraction([_item(), _item()])

        self.assertEqual(quality.grade, QualityGrade.EXCELLENT)
        self.assertEqual(quality.items_with_sku, 2)
        self.assertEqual(quality.warnings, ())

    def test_missing_names_grade_poor(self) -> None:
        quality = validate_extraction([_item(), _item(name="")])

        self.assertEqual(quality.grade, QualityGrade.POOR)
        self.assertIn("Only 1/2 items have product names", quality.warnings)

    def test_missing_skus_grade_acceptable(self) -> None:
        quality = validate_extraction([_item(skus=()), _item(skus=())])

        self.assertEqual(quality.grade, QualityGrade.ACCEPTABLE)
        self.assertIn("Only 0/2 items have SKU numbers", quality.warnings)

    def test_low_confidence_grades_good(self) -> None:
        quality = validate_extraction([_item(confidence=0.5)])

        self.assertEqual(quality.grade, QualityGrade.GOOD)
        self.assertEqual(quality.average_confidence, 0.5)

    def test_empty_extraction(self) -> None:
        quality = validate_extraction([])

        self.assertEqual(quality.grade, QualityGrade.POOR)
        self.assertEqual(quality.to_dict()["warnings"], ["No items extracted from document"])


class TestMinimumDataRequirements(unittest.TestCase):
    def test_half_complete_passes(self) -> None:
        report = validate_minimum_data_requirements([_item(), _item(quantity=0)])

        self.assertEqual(report.items_with_complete_data, 1)
        self.assertEqual(report.percent_complete, 50.0)

    def test_mostly_zero_quantities_fail(self) -> None:
        items = [_item(), _item(quantity=0), _item(quantity=0), _item(quantity=0)]

        with self.assertRaises(InsufficientDataError) as ctx:
            validate_minimum_data_requirements(items)

        self.assertEqual(str(ctx.exception), INSUFFICIENT_DATA_MESSAGE)
        self.assertEqual(ctx.exception.report.missing_quantity, 3)
        self.assertEqual(ctx.exception.to_dict()["details"]["percent_complete"], 25.0)

    def test_sku_alone_counts_as_identifier(self) -> None:
        report = validate_minimum_data_requirements([_item(name="", skus=("CF258A",))])

        self.assertEqual(report.missing_identifier, 0)

    def test_no_items(self) -> None:
        with self.assertRaises(InsufficientDataError) as ctx:
            validate_minimum_data_requirements([])

        self.assertEqual(str(ctx.exception), NO_ITEMS_MESSAGE)


class TestValidateMatching(unittest.TestCase):
    def test_high_confidence_matches_grade_excellent(self) -> None:
        quality = validate_matching([_result(1.0), _result(0.95, MatchMethod.FUZZY_SKU)])

        self.assertEqual(quality.grade, QualityGrade.EXCELLENT)
        self.assertEqual(quality.high_confidence, 2)
        self.assertEqual(quality.method_counts, {MatchMethod.EXACT_SKU: 1, MatchMethod.FUZZY_SKU: 1})

    def test_low_match_rate_grades_poor(self) -> None:
        quality = validate_matching([_result(1.0), _result(None), _result(None)])

        self.assertEqual(quality.grade, QualityGrade.POOR)
        self.assertEqual(quality.match_rate, 0.3333)
        self.assertIn("Low match rate: 33%", quality.warnings)

    def test_medium_scores_grade_good(self) -> None:
        results = [_result(0.85, MatchMethod.FULL_TEXT)] * 3 + [_result(None)]

        quality = validate_matching(results)

        self.assertEqual(quality.grade, QualityGrade.GOOD)
        self.assertEqual(quality.medium_confidence, 3)
        self.assertEqual(quality.average_score, 0.85)


if __name__ == "__main__":
    unittest.main()
