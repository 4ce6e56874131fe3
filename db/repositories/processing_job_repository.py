"""
Repository for savings job lifecycle persistence and status lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import Session

from db.models.processing_job import ProcessingJob, ProcessingJobStatus

MAX_IN_PROGRESS = 99
MAX_ERROR_LENGTH = 2000


class ProcessingJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        file_name: str,
        file_url: str,
        job_metadata: dict[str, Any] | None = None,
    ) -> ProcessingJob:
        job = ProcessingJob(
            file_name=file_name,
            file_url=file_url,
            status=ProcessingJobStatus.PENDING,
            progress=0,
            current_chunk=0,
            processed_items=0,
            current_step="Queued",
            job_metadata=job_metadata,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ProcessingJob | None:
        return self._session.get(ProcessingJob, job_id)

    def get_status(self, job_id: uuid.UUID) -> str | None:
        """
        Read the status column straight from the database, bypassing the
        identity map so a concurrent cancellation is visible.
        """

        stmt = select(ProcessingJob.status).where(ProcessingJob.id == job_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def list_jobs(
        self,
        *,
        limit: int = 100,
        status: str | None = None,
    ) -> list[ProcessingJob]:
        stmt: Select[tuple[ProcessingJob]] = select(ProcessingJob)
        if status:
            stmt = stmt.where(ProcessingJob.status == status)
        stmt = stmt.order_by(ProcessingJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def mark_processing(self, *, job_id: uuid.UUID, step: str | None = None) -> bool:
        """
        Move a job to processing unless it already finished. The status check
        is part of the UPDATE, so a cancel committed after the caller last read
        the row is never overwritten. Returns whether the row was claimed.
        """

        values: dict[str, Any] = {
            "status": ProcessingJobStatus.PROCESSING,
            "started_at": func.coalesce(ProcessingJob.started_at, datetime.now(timezone.utc)),
            "completed_at": None,
            "error_message": None,
        }
        if step is not None:
            values["current_step"] = step
        stmt = (
            update(ProcessingJob)
            .where(ProcessingJob.id == job_id)
            .where(ProcessingJob.status.not_in(sorted(ProcessingJobStatus.TERMINAL)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        claimed = self._session.execute(stmt).rowcount == 1
        job = self._session.get(ProcessingJob, job_id)
        if job is not None:
            self._session.expire(job)
        return claimed

    def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        progress: int,
        step: str | None = None,
        processed_items: int | None = None,
    ) -> ProcessingJob | None:
        """
        Record progress. Values are clamped so progress never decreases and
        stays below 100 until the job is completed.
        """

        job = self.get_job(job_id)
        if job is None:
            return None
        clamped = min(max(int(progress), 0), MAX_IN_PROGRESS)
        job.progress = max(job.progress or 0, clamped)
        if step is not None:
            job.current_step = step
        if processed_items is not None:
            job.processed_items = max(job.processed_items or 0, processed_items)
        return job

    def record_parse(
        self,
        *,
        job_id: uuid.UUID,
        total_items: int,
        header_row_index: int,
        job_metadata: dict[str, Any],
    ) -> ProcessingJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.total_items = total_items
        job.header_row_index = header_row_index
        job.job_metadata = {**(job.job_metadata or {}), **job_metadata}
        return job

    def merge_metadata(self, *, job_id: uuid.UUID, values: dict[str, Any]) -> ProcessingJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.job_metadata = {**(job.job_metadata or {}), **values}
        return job

    def advance_chunk(self, *, job_id: uuid.UUID, next_chunk: int) -> ProcessingJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.current_chunk = max(job.current_chunk or 0, next_chunk)
        return job

    def mark_completed(
        self,
        *,
        job_id: uuid.UUID,
        report_url: str | None = None,
    ) -> ProcessingJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = ProcessingJobStatus.COMPLETED
        job.progress = 100
        job.current_step = "Completed"
        job.completed_at = datetime.now(timezone.utc)
        job.report_url = report_url
        job.error_message = None
        return job

    def mark_failed(
        self,
        *,
        job_id: uuid.UUID,
        error_message: str,
    ) -> ProcessingJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = ProcessingJobStatus.FAILED
        job.current_step = "Failed"
        job.completed_at = datetime.now(timezone.utc)
        job.error_message = error_message[:MAX_ERROR_LENGTH]
        return job
