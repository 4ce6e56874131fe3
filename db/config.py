"""
db/config.py

Database URL resolution for the job store and product catalog.
"""

from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy.engine import make_url

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILES = (".env", ".env.local")

_CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_DRIVER_PREFIXES = (
    ("postgres://", "postgresql+psycopg://"),
    ("postgresql://", "postgresql+psycopg://"),
)


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    key, sep, value = line.partition("=")
    if not sep or not key.strip():
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1]
    return key.strip(), value


def load_env_files(root: Path | None = None) -> None:
    """
    Populate os.environ from ``.env`` then ``.env.local``. Variables already
    set in the process win.
    """

    base = root or PROJECT_ROOT
    for filename in ENV_FILES:
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite ``postgres://`` and bare ``postgresql://`` URLs to the psycopg
    driver spelling.
    """

    url = url.strip()
    for prefix, replacement in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def redact_database_url(url: str) -> str:
    """URL safe for logs, with the password masked."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        return "<unparseable database url>"


def resolve_database_url() -> str:
    """
    DATABASE_URL wins; CLOUD_DATABASE_URL is used only when ENVIRONMENT is
    production-like; LOCAL_DATABASE_URL is the fallback.
    """

    load_env_files()

    candidates = ["DATABASE_URL"]
    if os.getenv("ENVIRONMENT", "local").strip().lower() in _CLOUD_ENVIRONMENTS:
        candidates.append("CLOUD_DATABASE_URL")
    candidates.append("LOCAL_DATABASE_URL")

    for name in candidates:
        value = (os.getenv(name) or "").strip()
        if value:
            return normalize_postgres_url(value)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or LOCAL_DATABASE_URL "
        "(CLOUD_DATABASE_URL when ENVIRONMENT is production-like)."
    )
