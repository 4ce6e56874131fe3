"""
matching/normalization.py

SKU and free-text normalization used by the fuzzy and full-text tiers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_SKU_SEPARATORS = re.compile(r"[\s\-_]")
_NON_ALNUM = re.compile(r"[^A-Z0-9\s]")

# Vendor prefixes some distributors prepend to OEM part numbers (M-HEW, M-LEX, ...).
KNOWN_VENDOR_PREFIXES: tuple[str, ...] = ("MHEW", "MLEX", "MBRT", "MCAN", "MEPS", "MXER")
_GENERIC_VENDOR_PREFIX = re.compile(r"^M-[A-Z]{0,3}-?")

MAX_QUERY_TOKENS = 8


def normalize_sku(value: str) -> str:
    """
    Uppercase and drop whitespace, dashes and underscores.
    """

    return _SKU_SEPARATORS.sub("", value.strip().upper())


def strip_vendor_prefix(value: str) -> str:
    """
    Return the normalized SKU without a known vendor prefix.

    Returns the plain normalized SKU when no prefix applies.
    """

    raw_upper = value.strip().upper()
    normalized = normalize_sku(value)
    for prefix in KNOWN_VENDOR_PREFIXES:
        if normalized.startswith(prefix) and len(normalized) > len(prefix):
            return normalized[len(prefix):]
    if _GENERIC_VENDOR_PREFIX.match(raw_upper):
        stripped = normalize_sku(_GENERIC_VENDOR_PREFIX.sub("", raw_upper, count=1))
        if stripped:
            return stripped
    return normalized


def sku_variants(value: str) -> tuple[str, ...]:
    """
    Normalized SKU followed by its prefix-stripped form when they differ.
    """

    normalized = normalize_sku(value)
    if not normalized:
        return ()
    stripped = strip_vendor_prefix(value)
    if stripped and stripped != normalized:
        return (normalized, stripped)
    return (normalized,)


def normalize_text(value: str) -> str:
    """
    Uppercase and replace anything that is not a letter, digit or space.
    """

    return _NON_ALNUM.sub(" ", value.upper()).strip()


def tokenize(value: str, *, limit: int | None = MAX_QUERY_TOKENS) -> list[str]:
    """
    Split normalized text into tokens longer than one character.
    """

    tokens = [token for token in normalize_text(value).split() if len(token) > 1]
    if limit is not None:
        return tokens[:limit]
    return tokens


def token_overlap(query_tokens: Iterable[str], candidate_text: str) -> float:
    """
    Fraction of distinct query tokens present in the candidate text.
    """

    query = set(query_tokens)
    if not query:
        return 0.0
    candidate = set(tokenize(candidate_text, limit=None))
    return len(query & candidate) / len(query)


def overlap_score(overlap: float, *, floor: float = 0.70, ceiling: float = 0.95) -> float:
    """
    Map a token-overlap ratio onto the [floor, ceiling] confidence band.
    """

    return max(floor, min(ceiling, floor + overlap * (ceiling - floor)))
