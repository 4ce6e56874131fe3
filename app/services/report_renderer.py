"""
app/services/report_renderer.py

Report renderers turn a SavingsSummary plus per-item analyses into an
artifact and return an opaque reference to it.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from app.config import ReportSettings, get_report_settings
from savings.summary import build_report_payload
from savings.types import ItemAnalysis, SavingsSummary

logger = logging.getLogger(__name__)


class ReportRenderingError(RuntimeError):
    """
    Raised when a report artifact cannot be written.
    """


class ReportRenderer(Protocol):
    def render(
        self,
        job_id: uuid.UUID,
        summary: SavingsSummary,
        analyses: Sequence[ItemAnalysis],
    ) -> str:
        ...


class JSONReportRenderer:
    """
    Writes the report payload as ``<output_dir>/<job_id>.json`` and returns
    its ``file://`` URI.
    """

    def __init__(self, *, settings: ReportSettings | None = None) -> None:
        self._settings = settings or ReportSettings()

    def render(
        self,
        job_id: uuid.UUID,
        summary: SavingsSummary,
        analyses: Sequence[ItemAnalysis],
    ) -> str:
        payload = build_report_payload(
            job_id=str(job_id),
            summary=summary,
            analyses=analyses,
            company_name=self._settings.company_name,
        )
        output_dir = Path(self._settings.output_dir)
        target = output_dir / f"{job_id}.json"
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            raise ReportRenderingError(f"Could not write report {target}: {exc}") from exc

        logger.info("Report rendered job_id=%s path=%s items=%s", job_id, target, len(analyses))
        return target.resolve().as_uri()


@lru_cache(maxsize=1)
def get_report_renderer() -> JSONReportRenderer:
    return JSONReportRenderer(settings=get_report_settings())
