"""
app/config.py

Application-level configuration helpers.

Every policy constant used by the matcher, the savings optimizer and the
chunked orchestrator is read here so it can be tuned per environment without
touching the algorithms.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


# ---------------------------------------------------------------------------
# Settings groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for purchase-file parsing.
    """

    header_scan_rows: int = 20
    role_sample_rows: int = 10
    max_unit_price: float = 1000.0
    max_file_size_bytes: int = 25 * 1024 * 1024
    upload_dir: str = "uploads"


@dataclass(frozen=True)
class MatchingSettings:
    """
    Score thresholds for the matching cascade.
    """

    fuzzy_exact_score: float = 0.95
    fuzzy_partial_score: float = 0.85
    fuzzy_accept_score: float = 0.90
    full_text_entry_below: float = 0.85
    full_text_min_score: float = 0.70
    full_text_max_score: float = 0.95
    semantic_entry_below: float = 0.75
    semantic_min_similarity: float = 0.70
    ai_enabled: bool = False
    ai_entry_below: float = 0.75
    ai_max_score: float = 0.95
    search_limit: int = 10
    batch_size: int = 25


@dataclass(frozen=True)
class OptimizerSettings:
    """
    Savings policy constants.
    """

    reference_markup: float = 1.35
    min_cpp_improvement: float = 0.05
    min_annual_savings: float = 5.0
    yield_tolerance: float = 0.80
    monthly_pages: int = 1000


@dataclass(frozen=True)
class OrchestratorSettings:
    """
    Chunking, batching and continuation behavior for savings jobs.
    """

    chunk_size: int = 100
    batch_size: int = 25
    continuation_max_attempts: int = 3
    continuation_backoff_initial_seconds: float = 2.0
    continuation_backoff_multiplier: float = 2.0
    continuation_mode: str = "background"
    continuation_base_url: str = "http://127.0.0.1:8000"
    continuation_token: str | None = None


@dataclass(frozen=True)
class EmbeddingSettings:
    """
    Embedding provider settings for the semantic tier.
    """

    enabled: bool = True
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    api_key: str | None = None
    base_url: str | None = None
    max_retries: int = 2
    backoff_initial_seconds: float = 0.5


@dataclass(frozen=True)
class LLMSettings:
    """
    Settings for the attribute-extraction adapter used by the AI tier.
    """

    adapter: str = "openai"
    model: str = "gpt-4o-mini"
    max_tokens: int = 300
    api_key: str | None = None
    base_url: str | None = None
    max_retries: int = 2


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior for file downloads and continuation calls.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class ReportSettings:
    """
    Local artifact output for the report renderer.
    """

    output_dir: str = "reports"
    company_name: str = "Office Supply Savings"


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        header_scan_rows=max(1, _get_int_env("INGEST_HEADER_SCAN_ROWS", 20)),
        role_sample_rows=max(1, _get_int_env("INGEST_ROLE_SAMPLE_ROWS", 10)),
        max_unit_price=max(1.0, _get_float_env("INGEST_MAX_UNIT_PRICE", 1000.0)),
        max_file_size_bytes=max(1, _get_int_env("INGEST_MAX_FILE_SIZE_BYTES", 25 * 1024 * 1024)),
        upload_dir=_get_str_env("INGEST_UPLOAD_DIR", "uploads"),
    )


@lru_cache(maxsize=1)
def get_matching_settings() -> MatchingSettings:
    """
    Return cached matcher thresholds from environment variables.
    """

    return MatchingSettings(
        fuzzy_exact_score=_get_float_env("MATCH_FUZZY_EXACT_SCORE", 0.95),
        fuzzy_partial_score=_get_float_env("MATCH_FUZZY_PARTIAL_SCORE", 0.85),
        fuzzy_accept_score=_get_float_env("MATCH_FUZZY_ACCEPT_SCORE", 0.90),
        full_text_entry_below=_get_float_env("MATCH_FULL_TEXT_ENTRY_BELOW", 0.85),
        full_text_min_score=_get_float_env("MATCH_FULL_TEXT_MIN_SCORE", 0.70),
        full_text_max_score=_get_float_env("MATCH_FULL_TEXT_MAX_SCORE", 0.95),
        semantic_entry_below=_get_float_env("MATCH_SEMANTIC_ENTRY_BELOW", 0.75),
        semantic_min_similarity=_get_float_env("MATCH_SEMANTIC_MIN_SIMILARITY", 0.70),
        ai_enabled=_get_bool_env("MATCH_AI_ENABLED", False),
        ai_entry_below=_get_float_env("MATCH_AI_ENTRY_BELOW", 0.75),
        ai_max_score=min(0.99, _get_float_env("MATCH_AI_MAX_SCORE", 0.95)),
        search_limit=max(1, _get_int_env("MATCH_SEARCH_LIMIT", 10)),
        batch_size=max(1, _get_int_env("MATCH_BATCH_SIZE", 25)),
    )


@lru_cache(maxsize=1)
def get_optimizer_settings() -> OptimizerSettings:
    """
    Return cached savings policy constants from environment variables.
    """

    return OptimizerSettings(
        reference_markup=max(1.0, _get_float_env("SAVINGS_REFERENCE_MARKUP", 1.35)),
        min_cpp_improvement=max(0.0, _get_float_env("SAVINGS_MIN_CPP_IMPROVEMENT", 0.05)),
        min_annual_savings=max(0.0, _get_float_env("SAVINGS_MIN_ANNUAL_SAVINGS", 5.0)),
        yield_tolerance=max(0.0, _get_float_env("SAVINGS_YIELD_TOLERANCE", 0.80)),
        monthly_pages=max(1, _get_int_env("SAVINGS_MONTHLY_PAGES", 1000)),
    )


@lru_cache(maxsize=1)
def get_orchestrator_settings() -> OrchestratorSettings:
    """
    Return cached orchestrator settings from environment variables.
    """

    return OrchestratorSettings(
        chunk_size=max(1, _get_int_env("JOB_CHUNK_SIZE", 100)),
        batch_size=max(1, _get_int_env("JOB_BATCH_SIZE", 25)),
        continuation_max_attempts=max(1, _get_int_env("JOB_CONTINUATION_MAX_ATTEMPTS", 3)),
        continuation_backoff_initial_seconds=max(
            0.0, _get_float_env("JOB_CONTINUATION_BACKOFF_INITIAL_SECONDS", 2.0)
        ),
        continuation_backoff_multiplier=max(1.0, _get_float_env("JOB_CONTINUATION_BACKOFF_MULTIPLIER", 2.0)),
        continuation_mode=_get_str_env("JOB_CONTINUATION_MODE", "background").lower(),
        continuation_base_url=_get_str_env("JOB_CONTINUATION_BASE_URL", "http://127.0.0.1:8000"),
        continuation_token=_get_optional_str_env("JOB_CONTINUATION_TOKEN"),
    )


@lru_cache(maxsize=1)
def get_embedding_settings() -> EmbeddingSettings:
    """
    Return cached embedding provider settings from environment variables.
    """

    return EmbeddingSettings(
        enabled=_get_bool_env("EMBEDDING_ENABLED", True),
        model=_get_str_env("EMBEDDING_MODEL", "text-embedding-3-small"),
        dimensions=max(1, _get_int_env("EMBEDDING_DIMENSIONS", 1536)),
        api_key=_get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("OPENAI_BASE_URL"),
        max_retries=max(0, _get_int_env("EMBEDDING_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(0.0, _get_float_env("EMBEDDING_BACKOFF_INITIAL_SECONDS", 0.5)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached LLM adapter settings from environment variables.
    """

    return LLMSettings(
        adapter=_get_str_env("LLM_ADAPTER", "openai").lower(),
        model=_get_str_env("LLM_MODEL", "gpt-4o-mini"),
        max_tokens=max(1, _get_int_env("LLM_MAX_TOKENS", 300)),
        api_key=_get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("LLM_BASE_URL"),
        max_retries=max(0, _get_int_env("LLM_MAX_RETRIES", 2)),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_report_settings() -> ReportSettings:
    """
    Return report renderer settings from environment variables.
    """

    return ReportSettings(
        output_dir=_get_str_env("REPORT_OUTPUT_DIR", "reports"),
        company_name=_get_str_env("REPORT_COMPANY_NAME", "Office Supply Savings"),
    )
