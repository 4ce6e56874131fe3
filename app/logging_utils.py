"""
app/logging_utils.py

JSON event lines for savings job lifecycle logging.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a ``time.monotonic()`` reading."""
    return int((time.monotonic() - started_at) * 1000)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit ``{"event": ..., **fields}`` as one sorted JSON line. Fields whose
    value is None are left out.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {key: value for key, value in fields.items() if value is not None}
    payload["event"] = event
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
