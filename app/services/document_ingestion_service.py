"""
app/services/document_ingestion_service.py

Parses uploaded purchase files (CSV or Excel) into RawLineItem rows.

Parsing is tolerant by design of the inputs it sees in practice: report
banners above the header, blank or generic column names, several SKU
columns and missing prices. Rows are only dropped when they carry neither a
name nor any SKU, or when they look like metadata or a repeated header.
Parsing is deterministic so chunked jobs can re-parse the same bytes and
get identical row numbers.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any, Mapping

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.config import IngestionSettings, get_ingestion_settings
from app.mappers.column_role_mapper import (
    ColumnMapping,
    ColumnRoleMapper,
    HeaderDetection,
    detect_header,
    looks_like_repeated_header,
    looks_like_sku,
)
from matching.types import RawLineItem, SkuCandidates

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = frozenset({".xlsx", ".xlsm"})
TEXT_EXTENSIONS = frozenset({".csv", ".tsv", ".txt"})
LEGACY_EXCEL_EXTENSIONS = frozenset({".xls"})

CONFIDENCE_WEIGHTS: dict[str, float] = {
    "description": 0.25,
    "sku": 0.35,
    "price": 0.25,
    "quantity": 0.15,
}

_METADATA_ROW = re.compile(r"^(account|customer|report|date|total|page|subtotal|description|part\s*number)\b", re.IGNORECASE)
_METADATA_HEADER = re.compile(r"\b(account|customer|ship|bill|address|location|company name|vendor name)\b", re.IGNORECASE)
_EXTRA_SKU_EXCLUDED_HEADER = re.compile(
    r"\b(account|customer|ship|bill|address|location|city|state|zip|phone|email|date)\b",
    re.IGNORECASE,
)
_HEADER_WORDS_IN_VALUE = re.compile(r"\b(description|product|item|sku|oem|price|qty)\b", re.IGNORECASE)
_NUMBER = re.compile(r"\d+(?:\.\d+)?")

MIN_DESCRIPTION_SCAN_LENGTH = 15
MAX_DESCRIPTION_LENGTH = 200


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DocumentParseError(ValueError):
    """
    Raised when a purchase file cannot be read as a table.
    """


class UnsupportedDocumentError(DocumentParseError):
    """
    Raised for file types the ingestor does not read.
    """

    def __init__(self, file_name: str, extension: str) -> None:
        if extension in LEGACY_EXCEL_EXTENSIONS:
            hint = "Save the workbook as .xlsx and upload it again."
        else:
            hint = "Upload a .csv or .xlsx file."
        label = extension or "<none>"
        super().__init__(f"Unsupported file type '{label}' for {file_name}. {hint}")
        self.file_name = file_name
        self.extension = extension


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedDocument:
    """
    Items plus the layout facts persisted on the job.
    """

    items: tuple[RawLineItem, ...]
    header_row_index: int
    headers: tuple[str, ...]
    sheet_name: str | None
    data_rows: int
    skipped_rows: int
    mapping: ColumnMapping


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_quantity(raw: str | None) -> int:
    """
    Whole units from a quantity cell. No digits means one unit; an explicit
    zero stays zero.
    """

    if raw is None:
        return 1
    match = _NUMBER.search(raw.replace(",", ""))
    if match is None:
        return 1
    return int(float(match.group(0)))


def parse_price(raw: str | None, *, max_unit_price: float) -> float:
    """
    Unit price from a price cell; 0 when absent or above ``max_unit_price``.
    """

    if raw is None:
        return 0.0
    cleaned = raw.replace("$", "").replace(",", "").replace(" ", "")
    match = _NUMBER.search(cleaned)
    if match is None:
        return 0.0
    price = float(match.group(0))
    if price > max_unit_price:
        return 0.0
    return price


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class DocumentIngestionService:
    """
    Reads CSV/XLSX bytes and extracts RawLineItem rows.
    """

    def __init__(
        self,
        *,
        settings: IngestionSettings | None = None,
        mapper: ColumnRoleMapper | None = None,
    ) -> None:
        self._settings = settings or IngestionSettings()
        self._mapper = mapper or ColumnRoleMapper(sample_size=self._settings.role_sample_rows)

    def parse(self, file_bytes: bytes, file_name: str) -> tuple[list[RawLineItem], int]:
        """
        Parse a purchase file.

        Args:
            file_bytes: Raw file content.
            file_name:  Original file name; its extension selects the reader.

        Returns:
            ``(items, header_row_index)``; the index is -1 when the file had
            no header row.

        Raises:
            UnsupportedDocumentError: Unknown or legacy file extension.
            DocumentParseError: Content cannot be read as a table.
        """

        document = self.parse_document(file_bytes, file_name)
        return list(document.items), document.header_row_index

    def parse_document(self, file_bytes: bytes, file_name: str) -> ParsedDocument:
        if len(file_bytes) > self._settings.max_file_size_bytes:
            raise DocumentParseError(
                f"File {file_name} is {len(file_bytes)} bytes; the limit is {self._settings.max_file_size_bytes}."
            )

        extension = PurePosixPath(file_name.lower()).suffix
        if extension in EXCEL_EXTENSIONS:
            sheet_name, rows = self._read_workbook(file_bytes, file_name)
        elif extension in TEXT_EXTENSIONS:
            sheet_name, rows = None, self._read_delimited(file_bytes, tab_default=extension == ".tsv")
        else:
            raise UnsupportedDocumentError(file_name, extension)

        if not rows:
            raise DocumentParseError(f"File {file_name} contains no rows.")

        detection = detect_header(rows, scan_rows=self._settings.header_scan_rows)
        width = len(detection.headers)
        data_rows = [
            {header: (row[index] if index < len(row) else "") for index, header in enumerate(detection.headers)}
            for row in rows[detection.data_start:]
            if any(cell.strip() for cell in row)
        ]
        mapping = self._mapper.resolve(detection.headers, data_rows)

        logger.info(
            "Parsed layout file=%s sheet=%s header_index=%s columns=%s data_rows=%s mapping=%s",
            file_name,
            sheet_name,
            detection.header_index,
            width,
            len(data_rows),
            mapping.to_dict(),
        )

        items: list[RawLineItem] = []
        skipped = 0
        for position, row in enumerate(data_rows, start=1):
            if looks_like_repeated_header(list(row.values())):
                skipped += 1
                continue
            item = self.extract_item(row, detection, mapping, row_number=position)
            if item is None:
                skipped += 1
                continue
            items.append(item)

        logger.info(
            "Extracted items file=%s items=%s skipped=%s",
            file_name,
            len(items),
            skipped,
        )
        return ParsedDocument(
            items=tuple(items),
            header_row_index=detection.header_index,
            headers=detection.headers,
            sheet_name=sheet_name,
            data_rows=len(data_rows),
            skipped_rows=skipped,
            mapping=mapping,
        )

    # ------------------------------------------------------------------
    # Row extraction
    # ------------------------------------------------------------------

    def extract_item(
        self,
        row: Mapping[str, str],
        detection: HeaderDetection,
        mapping: ColumnMapping,
        *,
        row_number: int,
    ) -> RawLineItem | None:
        def cell(column: str | None) -> str:
            return (row.get(column) or "").strip() if column else ""

        def values(column: str | None) -> tuple[str, ...]:
            value = cell(column)
            return (value,) if value else ()

        extra: list[str] = [cell(column) for column in mapping.inferred_sku_columns if cell(column)]
        product_name = cell(mapping.product_name)
        assigned = mapping.assigned_columns()
        claimed = {value.upper() for value in (*extra, *(cell(c) for c in mapping.sku_columns())) if value}

        longest = product_name
        for header in detection.headers:
            value = cell(header)
            if not value or header in (mapping.quantity, mapping.price, mapping.uom):
                continue
            if (
                len(value) > len(longest)
                and MIN_DESCRIPTION_SCAN_LENGTH <= len(value) <= MAX_DESCRIPTION_LENGTH
                and any(ch.isspace() for ch in value)
                and not _METADATA_HEADER.search(header)
                and not _HEADER_WORDS_IN_VALUE.search(value)
            ):
                longest = value
            if header in assigned or value.upper() in claimed:
                continue
            if _EXTRA_SKU_EXCLUDED_HEADER.search(header):
                continue
            if looks_like_sku(value):
                extra.append(value)
                claimed.add(value.upper())

        namespaces = SkuCandidates(
            oem=values(mapping.oem),
            wholesaler=values(mapping.wholesaler),
            staples=values(mapping.staples),
            depot=values(mapping.depot),
            generic=values(mapping.generic) + tuple(extra),
        )
        candidates = namespaces.ordered()
        name = longest or (candidates[0] if candidates else "")

        if not name and not candidates:
            return None
        if _METADATA_ROW.match(name):
            return None

        quantity_cell = cell(mapping.quantity)
        quantity = parse_quantity(quantity_cell) if quantity_cell else 1
        price = parse_price(cell(mapping.price), max_unit_price=self._settings.max_unit_price)
        if price == 0.0 and cell(mapping.price):
            logger.debug("Discarded price row=%s raw=%r", row_number, cell(mapping.price))

        confidence = (
            CONFIDENCE_WEIGHTS["description"] * bool(longest)
            + CONFIDENCE_WEIGHTS["sku"] * bool(candidates)
            + CONFIDENCE_WEIGHTS["price"] * (price > 0)
            + CONFIDENCE_WEIGHTS["quantity"] * bool(quantity_cell)
        )

        return RawLineItem(
            row_number=row_number,
            product_name=name,
            sku_candidates=candidates,
            quantity=max(0, quantity),
            unit_price=price,
            uom=cell(mapping.uom).upper() or None,
            extraction_confidence=round(confidence, 2),
            namespaces=namespaces,
        )

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def _read_workbook(self, file_bytes: bytes, file_name: str) -> tuple[str | None, list[list[str]]]:
        try:
            workbook = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
            raise DocumentParseError(f"Could not open workbook {file_name}: {exc}") from exc

        try:
            best_name: str | None = None
            best_rows: list[list[str]] = []
            for worksheet in workbook.worksheets:
                rows = [
                    [_cell_text(value) for value in row]
                    for row in worksheet.iter_rows(values_only=True)
                ]
                rows = [row for row in rows if any(cell for cell in row)]
                logger.debug("Workbook sheet file=%s sheet=%s rows=%s", file_name, worksheet.title, len(rows))
                if len(rows) > len(best_rows):
                    best_name, best_rows = worksheet.title, rows
            return best_name, best_rows
        finally:
            workbook.close()

    def _read_delimited(self, file_bytes: bytes, *, tab_default: bool) -> list[list[str]]:
        try:
            text = file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = file_bytes.decode("latin-1")

        sample = text[:8192]
        try:
            dialect: type[csv.Dialect] | csv.Dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
        except csv.Error:
            dialect = csv.excel_tab if tab_default else csv.excel

        try:
            reader = csv.reader(io.StringIO(text, newline=""), dialect)
            rows = [[cell.strip() for cell in row] for row in reader]
        except csv.Error as exc:
            raise DocumentParseError(f"Could not read delimited file: {exc}") from exc
        return [row for row in rows if any(cell for cell in row)]


@lru_cache(maxsize=1)
def get_document_ingestion_service() -> DocumentIngestionService:
    """
    Return a cached DocumentIngestionService instance.
    """

    return DocumentIngestionService(settings=get_ingestion_settings())

