"""
app/mappers/column_role_mapper.py

Header detection and column-role resolution for purchase files.

Purchase exports arrive with report banners above the real header, blank or
generic column names, and several competing SKU columns. This module finds
the header row, assigns column roles from header names, and falls back to
statistical inference over sample rows when names are missing or generic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

HEADER_KEYWORDS: tuple[str, ...] = (
    "sku",
    "oem",
    "item",
    "product",
    "description",
    "quantity",
    "qty",
    "price",
    "cost",
    "amount",
    "part",
    "number",
    "uom",
    "date",
    "model",
    "staples",
    "depot",
    "sale",
)

METADATA_PHRASES: tuple[str, ...] = (
    "report comments",
    "report run date",
    "report date range",
    "customer number",
    "detail for all shipped",
)

# Keywords that mark a data row as a repeated header.
REPEATED_HEADER_KEYWORDS: tuple[str, ...] = (
    "sku",
    "quantity",
    "qty",
    "price",
    "cost",
    "amount",
    "total",
    "product",
    "description",
    "item",
)

GENERIC_HEADER_PATTERN = re.compile(r"^(column_\d+|__empty(_\d+)?|__col_\d+__)$", re.IGNORECASE)

_SKU_LIKE_HEADER = re.compile(
    r"\b(sku|code|id|number|part|item|product\s*code|wholesaler|oem|depot|staples)\b",
    re.IGNORECASE,
)
_DATE_LIKE_HEADER = re.compile(r"\b(date|day|month|year|time)\b", re.IGNORECASE)
_NAME_METADATA_HEADER = re.compile(
    r"\b(account|customer|ship.*to|bill.*to|shipto|billto|address|location|site|name|city|state|zip)\b",
    re.IGNORECASE,
)
_SKU_METADATA_HEADER = re.compile(
    r"\b(account|customer|ship.*to|bill.*to|shipto|billto|address|location|site|report|date|city|state|zip|company)\b",
    re.IGNORECASE,
)

_QTY_HEADER = re.compile(r"^qty|^quantity|qty\s*sold|quantity\s*sold|qty.*in.*sell|quantity.*in.*sell", re.IGNORECASE)
_UOM_HEADER = re.compile(r"^(sell\s*uom|uom|u/m|unit of measure)$", re.IGNORECASE)
_PRICE_HEADER = re.compile(r"(unit\s*price|unit\s*cost|price|cost|amount|sale)", re.IGNORECASE)
_PRICE_PREFERRED_HEADER = re.compile(r"v\d+\s*price|current\s*price|customer\s*price|your\s*price", re.IGNORECASE)
_PRICE_EXCLUDED_HEADER = re.compile(r"total|extended|supplier\s*id", re.IGNORECASE)
_OEM_HEADER = re.compile(r"\b(oem|part.*number|part.*#|mfg.*part|mfg.*number)\b", re.IGNORECASE)
_WHOLESALER_HEADER = re.compile(r"wholesaler.*(product.*code|sku|number)", re.IGNORECASE)
_STAPLES_HEADER = re.compile(r"staples.*(sku|number|item)", re.IGNORECASE)
_DEPOT_HEADER = re.compile(r"depot.*(product.*code|sku|number)", re.IGNORECASE)
_GENERIC_SKU_HEADER = re.compile(r"^(sku|item number|item#|item #|catalog number)$|catalog.*number", re.IGNORECASE)

_PRODUCT_NAME_EXCLUDED = ("account", "customer", "company", "ship", "bill")
_DESCRIPTION_EXCLUDED = (
    "account",
    "customer",
    "ship",
    "bill",
    "address",
    "location",
    "site",
    "company",
    "vendor",
    "supplier",
    "po",
    "order",
    "date",
    "report",
)


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.
    """

    return " ".join(header.strip().lower().split())


def is_generic_header(header: str) -> bool:
    return bool(GENERIC_HEADER_PATTERN.match(header.strip()))


# ---------------------------------------------------------------------------
# Header detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeaderDetection:
    """
    Located header row.

    ``header_index`` is -1 when the file has no header and synthetic
    ``Column_N`` names were generated; ``data_start`` is the index of the
    first data row in either case.
    """

    headers: tuple[str, ...]
    header_index: int
    data_start: int

    @property
    def synthetic(self) -> bool:
        return self.header_index < 0


def _non_empty(row: Sequence[str]) -> int:
    return sum(1 for cell in row if cell.strip())


def _is_metadata_row(row: Sequence[str]) -> bool:
    first = next((cell.strip().lower() for cell in row if cell.strip()), "")
    return any(first.startswith(phrase) for phrase in METADATA_PHRASES)


def _keyword_cells(row: Sequence[str]) -> int:
    count = 0
    for cell in row:
        lowered = cell.strip().lower()
        if lowered and any(keyword in lowered for keyword in HEADER_KEYWORDS):
            count += 1
    return count


def is_header_candidate(row: Sequence[str]) -> bool:
    if _is_metadata_row(row):
        return False
    matches = _keyword_cells(row)
    return matches >= 2 or (matches >= 1 and _non_empty(row) >= 5)


def detect_header(rows: Sequence[Sequence[str]], *, scan_rows: int = 20) -> HeaderDetection:
    """
    Find the header row among the first ``scan_rows`` rows.

    Without a qualifying row the widest early data row defines the column
    count and positional ``Column_1..Column_n`` names are returned.
    """

    for index, row in enumerate(rows[:scan_rows]):
        if not row or _non_empty(row) == 0:
            continue
        if is_header_candidate(row):
            return HeaderDetection(
                headers=normalize_headers(row),
                header_index=index,
                data_start=index + 1,
            )

    data_start = next((index for index, row in enumerate(rows) if _non_empty(row) >= 3), 0)
    width = max((len(row) for row in rows), default=0)
    synthetic = tuple(f"Column_{position}" for position in range(1, width + 1))
    return HeaderDetection(headers=synthetic, header_index=-1, data_start=data_start)


def normalize_headers(raw_headers: Sequence[str]) -> tuple[str, ...]:
    """
    Replace blank header cells with ``__COL_{i}__`` and suffix duplicates.
    """

    seen: dict[str, int] = {}
    headers: list[str] = []
    for index, raw in enumerate(raw_headers):
        name = raw.strip() or f"__COL_{index}__"
        key = name.lower()
        if key in seen:
            seen[key] += 1
            name = f"{name}_{seen[key]}"
        else:
            seen[key] = 1
        headers.append(name)
    return tuple(headers)


def looks_like_repeated_header(values: Sequence[str]) -> bool:
    """True for data rows that mostly repeat header vocabulary."""
    non_empty = [value.strip().lower() for value in values if value.strip()]
    if not non_empty:
        return False
    matches = sum(
        1
        for value in non_empty
        if len(value) < 30 and any(keyword in value for keyword in REPEATED_HEADER_KEYWORDS)
    )
    threshold = max(2, min(3, -(-len(non_empty) // 2)))
    return matches >= threshold


# ---------------------------------------------------------------------------
# Statistical role inference
# ---------------------------------------------------------------------------


_CURRENCY_CLEAN = re.compile(r"[$,]")
_NON_NUMERIC_CHARS = re.compile(r"[0-9.,$ ]")
_LEADING_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?")


def looks_like_sku(value: str) -> bool:
    text = value.strip()
    return (
        3 <= len(text) <= 30
        and bool(re.search(r"[a-z]", text, re.IGNORECASE))
        and bool(re.search(r"\d", text))
        and len(text.split(" ")) <= 2
    )


def _looks_like_description(value: str) -> bool:
    text = value.strip()
    return len(text) > 20 and len(text.split()) >= 3


def _numeric_value(value: str) -> float | None:
    text = value.strip()
    cleaned = _CURRENCY_CLEAN.sub("", text).strip()
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return None
    if len(_NON_NUMERIC_CHARS.sub("", text)) >= 3:
        return None
    return float(match.group(0))


@dataclass(frozen=True)
class ColumnProfile:
    """
    Shape statistics for one column over the sample rows.

    Fractions are computed over non-empty values only.
    """

    values: int = 0
    numeric: float = 0.0
    mean_value: float = 0.0
    decimals: float = 0.0
    currency: float = 0.0
    text: float = 0.0
    mean_length: float = 0.0
    sku_shape: float = 0.0
    description_shape: float = 0.0
    unique_ratio: float = 0.0


def profile_column(values: Sequence[str]) -> ColumnProfile:
    cleaned = [value.strip() for value in values if value and value.strip()]
    if not cleaned:
        return ColumnProfile()

    numbers = [_numeric_value(value) for value in cleaned]
    is_numeric = np.array([number is not None for number in numbers], dtype=bool)
    numeric_values = np.array([number for number in numbers if number is not None], dtype=float)
    has_decimal = np.array(
        [number is not None and "." in _CURRENCY_CLEAN.sub("", value) for value, number in zip(cleaned, numbers)],
        dtype=bool,
    )
    lengths = np.array([len(value) for value in cleaned], dtype=float)

    return ColumnProfile(
        values=len(cleaned),
        numeric=float(is_numeric.mean()),
        mean_value=float(numeric_values.mean()) if numeric_values.size else 0.0,
        decimals=float(has_decimal.mean()),
        currency=float(np.mean(["$" in value for value in cleaned])),
        text=float(np.mean([bool(re.search(r"[a-z]", value, re.IGNORECASE)) for value in cleaned])),
        mean_length=float(lengths.mean()),
        sku_shape=float(np.mean([looks_like_sku(value) for value in cleaned])),
        description_shape=float(np.mean([_looks_like_description(value) for value in cleaned])),
        unique_ratio=len(set(cleaned)) / len(cleaned),
    )


@dataclass(frozen=True)
class RoleAssignment:
    """
    Columns assigned to each role by data-shape inference.
    """

    price: str | None = None
    quantity: str | None = None
    product_name: str | None = None
    sku_columns: tuple[str, ...] = ()


def infer_column_roles(
    sample_rows: Sequence[Mapping[str, str]],
    headers: Sequence[str] | None = None,
    *,
    sample_size: int = 10,
) -> RoleAssignment:
    """
    Classify columns as price, quantity, product name or SKU from their values.

    Args:
        sample_rows: Data rows keyed by header.
        headers: Column order; defaults to the keys of the first row.
        sample_size: Number of leading rows to profile.

    Returns:
        RoleAssignment where each single-valued role maps to at most one
        column and price and quantity never share a column.
    """

    if headers is None:
        headers = list(sample_rows[0].keys()) if sample_rows else []
    sample = list(sample_rows[:sample_size])
    profiles = {
        header: profile_column([str(row.get(header, "") or "") for row in sample])
        for header in headers
    }

    price = next(
        (
            header
            for header in headers
            if not _SKU_LIKE_HEADER.search(header)
            and profiles[header].numeric > 0.7
            and 1 <= profiles[header].mean_value < 1000
            and (profiles[header].decimals > 0.5 or profiles[header].currency > 0.3)
        ),
        None,
    )

    quantity = next(
        (
            header
            for header in headers
            if header != price
            and not _DATE_LIKE_HEADER.search(header)
            and profiles[header].numeric > 0.7
            and 1 <= profiles[header].mean_value <= 1000
            and profiles[header].decimals < 0.3
        ),
        None,
    )

    product_name = next(
        (
            header
            for header in headers
            if header not in (price, quantity)
            and not _NAME_METADATA_HEADER.search(header)
            and not (profiles[header].unique_ratio < 0.3 and profiles[header].values > 3)
            and (
                profiles[header].description_shape > 0.5
                or (profiles[header].text > 0.7 and profiles[header].mean_length > 20)
            )
        ),
        None,
    )

    sku_columns = tuple(
        header
        for header in headers
        if header not in (price, quantity, product_name)
        and not _SKU_METADATA_HEADER.search(header)
        and not (profiles[header].unique_ratio < 0.5 and profiles[header].values > 3)
        and (
            profiles[header].sku_shape > 0.3
            or (profiles[header].text > 0.5 and 3 <= profiles[header].mean_length <= 30)
        )
    )

    return RoleAssignment(
        price=price,
        quantity=quantity,
        product_name=product_name,
        sku_columns=sku_columns,
    )


# ---------------------------------------------------------------------------
# Named-column resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnMapping:
    """
    Resolved source column per role. Unresolved roles are None.
    """

    product_name: str | None = None
    quantity: str | None = None
    price: str | None = None
    uom: str | None = None
    oem: str | None = None
    wholesaler: str | None = None
    staples: str | None = None
    depot: str | None = None
    generic: str | None = None
    inferred_sku_columns: tuple[str, ...] = ()
    strategies: dict[str, str] = field(default_factory=dict)

    def sku_columns(self) -> tuple[str, ...]:
        named = (self.oem, self.wholesaler, self.staples, self.depot, self.generic)
        return tuple(column for column in named if column) + self.inferred_sku_columns

    def assigned_columns(self) -> set[str]:
        columns = {self.product_name, self.quantity, self.price, self.uom, *self.sku_columns()}
        return {column for column in columns if column}

    def to_dict(self) -> dict[str, object]:
        return {
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
            "uom": self.uom,
            "oem": self.oem,
            "wholesaler": self.wholesaler,
            "staples": self.staples,
            "depot": self.depot,
            "generic": self.generic,
            "inferred_sku_columns": list(self.inferred_sku_columns),
            "strategies": dict(self.strategies),
        }


def _first(headers: Sequence[str], predicate) -> str | None:
    return next((header for header in headers if predicate(normalize_header(header))), None)


def _is_quantity_header(lower: str) -> bool:
    if _UOM_HEADER.match(lower):
        return False
    return lower in ("qty", "quantity", "qty sold", "quantity sold") or bool(_QTY_HEADER.search(lower))


def _is_price_header(lower: str) -> bool:
    if _SKU_LIKE_HEADER.search(lower):
        return False
    if lower in ("sale", "price", "unit price", "unit cost"):
        return True
    if _PRICE_PREFERRED_HEADER.search(lower):
        return True
    return bool(_PRICE_HEADER.search(lower)) and not _PRICE_EXCLUDED_HEADER.search(lower)


def _is_product_name_header(lower: str) -> bool:
    if lower in ("item description", "product description", "product name", "item name"):
        return True
    return (
        ("item" in lower or "product" in lower)
        and ("description" in lower or "name" in lower)
        and not any(token in lower for token in _PRODUCT_NAME_EXCLUDED)
    )


def _is_description_header(lower: str) -> bool:
    if any(token in lower for token in _DESCRIPTION_EXCLUDED):
        return False
    return lower in ("description", "item", "product")


class ColumnRoleMapper:
    """
    Resolves column roles from header names with inference as fallback.
    """

    def __init__(self, *, sample_size: int = 10) -> None:
        self._sample_size = max(1, sample_size)

    def resolve(
        self,
        headers: Sequence[str],
        sample_rows: Sequence[Mapping[str, str]],
    ) -> ColumnMapping:
        strategies: dict[str, str] = {}

        quantity = _first(headers, _is_quantity_header)
        price = _first(headers, _is_price_header)
        product_name = _first(headers, _is_product_name_header) or _first(headers, _is_description_header)
        uom = _first(headers, lambda lower: bool(_UOM_HEADER.match(lower)))
        oem = _first(headers, lambda lower: lower in ("oem number", "oem") or bool(_OEM_HEADER.search(lower)))
        wholesaler = _first(headers, lambda lower: bool(_WHOLESALER_HEADER.search(lower)))
        staples = _first(headers, lambda lower: bool(_STAPLES_HEADER.search(lower)))
        depot = _first(headers, lambda lower: lower == "office depot sku" or bool(_DEPOT_HEADER.search(lower)))
        generic = _first(headers, lambda lower: bool(_GENERIC_SKU_HEADER.search(lower)))

        for role, column in (
            ("quantity", quantity),
            ("price", price),
            ("product_name", product_name),
            ("uom", uom),
            ("oem", oem),
            ("wholesaler", wholesaler),
            ("staples", staples),
            ("depot", depot),
            ("generic", generic),
        ):
            if column is not None:
                strategies[role] = "header"

        inferred_skus: tuple[str, ...] = ()
        has_generic_headers = any(is_generic_header(header) for header in headers)
        if has_generic_headers or not (quantity and price and product_name):
            roles = infer_column_roles(sample_rows, headers, sample_size=self._sample_size)
            taken = {column for column in (quantity, price, product_name, uom, oem, wholesaler, staples, depot, generic) if column}
            if price is None and roles.price and roles.price not in taken and not _SKU_LIKE_HEADER.search(roles.price):
                price = roles.price
                strategies["price"] = "inferred"
                taken.add(price)
            if quantity is None and roles.quantity and roles.quantity not in taken:
                quantity = roles.quantity
                strategies["quantity"] = "inferred"
                taken.add(quantity)
            if product_name is None and roles.product_name and roles.product_name not in taken:
                product_name = roles.product_name
                strategies["product_name"] = "inferred"
                taken.add(product_name)
            if has_generic_headers:
                inferred_skus = tuple(column for column in roles.sku_columns if column not in taken)

        return ColumnMapping(
            product_name=product_name,
            quantity=quantity,
            price=price,
            uom=uom,
            oem=oem,
            wholesaler=wholesaler,
            staples=staples,
            depot=depot,
            generic=generic,
            inferred_sku_columns=inferred_skus,
            strategies=strategies,
        )
