"""
app/services/file_source.py

Fetches purchase files by URL for chunk processing.

HTTP(S) downloads go through requests with exponential backoff on transient
failures. ``file://`` URIs and plain paths are read from the local disk,
which is how in-process uploads are handed to background chunks.
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import requests

from app.config import ExternalHTTPSettings, get_external_http_settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class FileSourceError(RuntimeError):
    """
    Raised when a purchase file cannot be fetched.
    """


class FileSource(Protocol):
    def fetch(self, url: str) -> bytes:
        ...


class URLFileSource:
    """
    Reads ``http(s)://``, ``file://`` and local path references.
    """

    def __init__(
        self,
        *,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = http_settings or ExternalHTTPSettings()
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._max_retries = settings.max_retries
        self._backoff_initial_seconds = settings.backoff_initial_seconds
        self._backoff_multiplier = settings.backoff_multiplier

    def fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            return self._download(url)
        if parsed.scheme == "file":
            return self._read_local(Path(unquote(parsed.path)))
        if parsed.scheme in ("", None) or len(parsed.scheme) == 1:
            # Bare paths, including Windows drive letters.
            return self._read_local(Path(url))
        raise FileSourceError(f"Unsupported file URL scheme '{parsed.scheme}'.")

    def _read_local(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FileSourceError(f"Could not read file {path}: {exc}") from exc

    def _download(self, url: str) -> bytes:
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.get(url, timeout=self._timeout_seconds)
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response.content
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    logger.error("File download failed status=%s url=%s error=%s", status_code, url, exc)
                    raise FileSourceError(f"Download failed with status {status_code}.") from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "File download retry attempt=%s/%s wait_seconds=%.2f url=%s",
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error("File download exhausted retries url=%s error=%s", url, last_error)
        raise FileSourceError("Download failed after retries.") from last_error


@lru_cache(maxsize=1)
def get_file_source() -> URLFileSource:
    return URLFileSource(http_settings=get_external_http_settings())
