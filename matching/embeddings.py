"""
matching/embeddings.py

OpenAI-backed embedding provider for the semantic matching tier.
"""

from __future__ import annotations

import logging
import time

from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI, RateLimitError

from matching.base import EmbeddingError

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, InternalServerError, RateLimitError)


class OpenAIEmbeddingProvider:
    """
    Embeds text with ``text-embedding-3-small`` by default.

    Transient API failures are retried with exponential backoff; anything
    left after the retry budget surfaces as ``EmbeddingError`` so the matcher
    can record a tier miss for that item.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 2,
        backoff_initial_seconds: float = 0.5,
        client: OpenAI | None = None,
    ) -> None:
        if client is None:
            client_kwargs: dict = {"api_key": api_key} if api_key else {}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)
        self._client = client
        self._model = model
        self._max_retries = max(0, max_retries)
        self._backoff_initial_seconds = max(0.0, backoff_initial_seconds)

    def embed(self, text: str) -> list[float]:
        cleaned = text.strip()
        if not cleaned:
            raise EmbeddingError("Cannot embed empty text.")

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._client.embeddings.create(model=self._model, input=cleaned)
                return list(response.data[0].embedding)
            except _TRANSIENT_ERRORS as exc:
                last_error = exc
                if attempt >= self._max_retries:
                    break
                delay = self._backoff_initial_seconds * (2**attempt)
                logger.warning(
                    "Embedding request failed attempt=%s/%s retry_in=%.2fs error=%s",
                    attempt + 1,
                    self._max_retries + 1,
                    delay,
                    exc,
                )
                time.sleep(delay)

        raise EmbeddingError(f"Embedding failed after {self._max_retries + 1} attempt(s): {last_error}")
