"""
tests/test_document_ingestion_service.py

Parsing of CSV and XLSX purchase files into RawLineItem rows.
"""

from __future__ import annotations

import io

import pytest
from openpyxl import Workbook

from app.config import IngestionSettings
from app.services.document_ingestion_service import (
    DocumentIngestionService,
    DocumentParseError,
    UnsupportedDocumentError,
    parse_price,
    parse_quantity,
)

BANNER_CSV = (
    "Report Run Date: 2026-01-05,,,\n"
    "Customer Number: 12345,,,\n"
    "SKU,Item Description,Qty,Unit Price\n"
    "N9J90AN,HP 64 Black Ink Cartridge,5,$25.64\n"
    ",,,\n"
    "SKU,Item Description,Qty,Unit Price\n"
    "CF258A,HP 58A Black Toner Cartridge,2,1500.00\n"
    "Total,,,\n"
)

HEADERLESS_CSV = (
    "CF258A,HP 58A Black Toner Cartridge,2,129.99\n"
    "N9J90AN,HP 64 Black Ink Cartridge Twin,5,18.99\n"
    "CE285A,HP 85A Black Toner Cartridge,3,89.50\n"
)


@pytest.fixture()
def service() -> DocumentIngestionService:
    return DocumentIngestionService()


def _workbook_bytes() -> bytes:
    workbook = Workbook()
    notes = workbook.active
    notes.title = "Notes"
    notes.append(["Prepared by procurement"])

    orders = workbook.create_sheet("Orders")
    orders.append(["SKU", "Item Description", "Qty", "Unit Price"])
    orders.append(["N9J90AN", "HP 64 Black Ink Cartridge", 5, 25.64])
    orders.append(["CF258A", "HP 58A Black Toner Cartridge", 2, 129.99])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------


class TestParseQuantity:
    def test_reads_leading_number(self) -> None:
        assert parse_quantity("3 boxes") == 3
        assert parse_quantity("1,200") == 1200
        assert parse_quantity("2.7") == 2

    def test_missing_digits_default_to_one(self) -> None:
        assert parse_quantity(None) == 1
        assert parse_quantity("each") == 1

    def test_explicit_zero_is_kept(self) -> None:
        assert parse_quantity("0") == 0


class TestParsePrice:
    def test_strips_currency_formatting(self) -> None:
        assert parse_price("$1,234.50", max_unit_price=2000.0) == 1234.5
        assert parse_price("12.50 USD", max_unit_price=1000.0) == 12.5

    def test_prices_above_ceiling_are_discarded(self) -> None:
        assert parse_price("1500", max_unit_price=1000.0) == 0.0

    def test_unparseable_price_is_zero(self) -> None:
        assert parse_price("N/A", max_unit_price=1000.0) == 0.0
        assert parse_price(None, max_unit_price=1000.0) == 0.0


# ---------------------------------------------------------------------------
# Delimited files
# ---------------------------------------------------------------------------


class TestDelimitedParsing:
    def test_banner_rows_repeated_headers_and_totals_are_skipped(self, service) -> None:
        document = service.parse_document(BANNER_CSV.encode("utf-8"), "orders.csv")

        assert document.header_row_index == 2
        assert document.sheet_name is None
        assert document.data_rows == 4
        assert document.skipped_rows == 2
        assert [item.row_number for item in document.items] == [1, 3]

        first, second = document.items
        assert first.product_name == "HP 64 Black Ink Cartridge"
        assert first.sku_candidates == ("N9J90AN",)
        assert first.quantity == 5
        assert first.unit_price == 25.64
        assert first.extraction_confidence == 1.0

        assert second.sku_candidates == ("CF258A",)
        assert second.unit_price == 0.0
        assert second.extraction_confidence == 0.75

    def test_parse_returns_items_and_header_index(self, service) -> None:
        items, header_index = service.parse(BANNER_CSV.encode("utf-8"), "orders.csv")

        assert header_index == 2
        assert len(items) == 2

    def test_headerless_file_uses_inferred_roles(self, service) -> None:
        document = service.parse_document(HEADERLESS_CSV.encode("utf-8"), "export.csv")

        assert document.header_row_index == -1
        assert document.headers == ("Column_1", "Column_2", "Column_3", "Column_4")
        assert document.mapping.price == "Column_4"
        assert document.mapping.quantity == "Column_3"
        assert document.mapping.product_name == "Column_2"
        assert document.mapping.inferred_sku_columns == ("Column_1",)

        item = document.items[0]
        assert item.row_number == 1
        assert item.product_name == "HP 58A Black Toner Cartridge"
        assert item.sku_candidates == ("CF258A",)
        assert item.quantity == 2
        assert item.unit_price == 129.99

    def test_sku_like_value_in_unassigned_column_is_collected(self, service) -> None:
        content = (
            "SKU,Item Description,Qty,Unit Price,Vendor Part\n"
            "N9J90AN,HP 64 Black Ink Cartridge,1,25.64,Q2612A\n"
        )

        items, _ = service.parse(content.encode("utf-8"), "orders.csv")

        assert items[0].sku_candidates == ("N9J90AN", "Q2612A")

    def test_banner_rows_do_not_change_extracted_items(self, service) -> None:
        table = (
            "SKU,Item Description,Qty,Unit Price\n"
            "N9J90AN,HP 64 Black Ink Cartridge,5,$25.64\n"
            "CF258A,HP 58A Black Toner Cartridge,2,129.99\n"
        )
        banner = (
            "Purchase History Report,,,\n"
            "Report Run Date: 2026-01-05,,,\n"
            "Customer Number: 12345,,,\n"
        )

        plain = service.parse_document(table.encode("utf-8"), "orders.csv")
        bannered = service.parse_document((banner + table).encode("utf-8"), "orders.csv")

        assert plain.header_row_index == 0
        assert bannered.header_row_index == 3
        assert bannered.items == plain.items
        assert len(plain.items) == 2

    def test_metadata_words_only_skip_whole_words(self, service) -> None:
        content = (
            "SKU,Item Description,Qty,Unit Price\n"
            "L0R95AN,PageWide 972A Black Ink Cartridge,2,89.99\n"
            "DB2027,Datebook Weekly Planner,1,14.50\n"
            ",Total Invoice Amount,,194.48\n"
        )

        items, _ = service.parse(content.encode("utf-8"), "orders.csv")

        assert [item.product_name for item in items] == [
            "PageWide 972A Black Ink Cartridge",
            "Datebook Weekly Planner",
        ]

    def test_missing_quantity_column_defaults_to_one_unit(self, service) -> None:
        content = "SKU,Item Description,Unit Price\nCF258A,HP 58A Black Toner Cartridge,99.00\n"

        items, _ = service.parse(content.encode("utf-8"), "orders.csv")

        assert items[0].quantity == 1

    def test_empty_file_is_rejected(self, service) -> None:
        with pytest.raises(DocumentParseError, match="contains no rows"):
            service.parse(b"", "orders.csv")

    def test_oversized_file_is_rejected(self) -> None:
        service = DocumentIngestionService(settings=IngestionSettings(max_file_size_bytes=10))

        with pytest.raises(DocumentParseError, match="the limit is 10"):
            service.parse(BANNER_CSV.encode("utf-8"), "orders.csv")


# ---------------------------------------------------------------------------
# Workbooks and file types
# ---------------------------------------------------------------------------


class TestWorkbookParsing:
    def test_sheet_with_most_rows_is_used(self, service) -> None:
        document = service.parse_document(_workbook_bytes(), "orders.xlsx")

        assert document.sheet_name == "Orders"
        assert document.header_row_index == 0
        assert [item.sku_candidates for item in document.items] == [("N9J90AN",), ("CF258A",)]
        assert document.items[0].quantity == 5
        assert document.items[0].unit_price == 25.64

    def test_corrupt_workbook_raises_parse_error(self, service) -> None:
        with pytest.raises(DocumentParseError, match="Could not open workbook"):
            service.parse(b"not a zip archive", "orders.xlsx")


class TestUnsupportedFiles:
    def test_legacy_excel_gets_conversion_hint(self, service) -> None:
        with pytest.raises(UnsupportedDocumentError, match="Save the workbook as .xlsx") as exc_info:
            service.parse(b"binary", "orders.xls")

        assert exc_info.value.extension == ".xls"

    def test_unknown_extension(self, service) -> None:
        with pytest.raises(UnsupportedDocumentError, match="Upload a .csv or .xlsx file"):
            service.parse(b"%PDF", "orders.pdf")
