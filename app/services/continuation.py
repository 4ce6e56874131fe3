"""
app/services/continuation.py

Schedulers that re-invoke chunk processing for the next slice of a job.

The orchestrator only depends on ``ContinuationScheduler.schedule``; the
concrete scheduler decides whether the next chunk runs on an in-process
executor or through an HTTP call back into the API.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any, Protocol

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)


class ContinuationSchedulingError(RuntimeError):
    """
    Raised when the next chunk could not be handed off.
    """


class TaskExecutor(Protocol):
    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        ...


class ContinuationScheduler(Protocol):
    def schedule(self, job_id: uuid.UUID, chunk_index: int) -> None:
        ...


class ExecutorContinuationScheduler:
    """
    Submits the chunk task to an executor such as a ThreadPoolExecutor.
    """

    def __init__(
        self,
        *,
        executor: TaskExecutor,
        task: Callable[[uuid.UUID, int], None],
    ) -> None:
        self._executor = executor
        self._task = task

    def schedule(self, job_id: uuid.UUID, chunk_index: int) -> None:
        try:
            self._executor.submit(self._task, job_id, chunk_index)
        except RuntimeError as exc:
            raise ContinuationSchedulingError(str(exc)) from exc


class HTTPContinuationScheduler:
    """
    POSTs to ``/savings-jobs/{job_id}/chunks/{chunk_index}`` so the next chunk
    runs in a fresh request with its own time budget.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout_seconds = (http_settings or ExternalHTTPSettings()).timeout_seconds
        self._session = session or requests.Session()

    def schedule(self, job_id: uuid.UUID, chunk_index: int) -> None:
        url = f"{self._base_url}/savings-jobs/{job_id}/chunks/{chunk_index}"
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            response = self._session.post(url, headers=headers, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise ContinuationSchedulingError(f"Continuation request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ContinuationSchedulingError(
                f"Continuation request failed: {response.status_code} - {response.text[:500]}"
            )
        logger.info("Continuation scheduled job_id=%s chunk=%s status=%s", job_id, chunk_index, response.status_code)
