"""
app/services/savings_job_orchestrator.py

Chunked savings job orchestration.

A job is processed one chunk of line items per invocation. Each invocation
re-reads the purchase file, matches its slice, flushes results in small
batches and then hands the next chunk to a ContinuationScheduler. The final
chunk runs the optimizer over every persisted match, assembles the summary,
renders the report and completes the job.

Progress checkpoints:

     5  downloading file
    10  file parsed
    15  matching started
    15-60  matching (proportional to processed items)
    60  calculating savings
    65  savings persisted
    78  generating report
    93  saving report
   100  completed
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any

from fastapi import BackgroundTasks, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import (
    IngestionSettings,
    OrchestratorSettings,
    get_embedding_settings,
    get_ingestion_settings,
    get_llm_settings,
    get_matching_settings,
    get_optimizer_settings,
    get_orchestrator_settings,
)
from app.logging_utils import elapsed_ms, log_event
from app.mappers.line_item_mapper import apply_analysis, match_result_to_record, record_to_match_result
from app.services.continuation import (
    ContinuationScheduler,
    ContinuationSchedulingError,
    ExecutorContinuationScheduler,
    HTTPContinuationScheduler,
    TaskExecutor,
)
from app.services.document_ingestion_service import (
    DocumentIngestionService,
    ParsedDocument,
    get_document_ingestion_service,
)
from app.services.file_source import FileSource, get_file_source
from app.services.report_renderer import ReportRenderer, get_report_renderer
from app.validators.extraction_validator import (
    InsufficientDataError,
    validate_extraction,
    validate_matching,
    validate_minimum_data_requirements,
)
from db.models.line_item_match import LineItemMatch
from db.models.processing_job import ProcessingJob, ProcessingJobStatus
from db.models.savings_report import SavingsReport
from db.repositories.errors import JobNotFoundError
from db.repositories.line_item_repository import LineItemRepository
from db.repositories.processing_job_repository import ProcessingJobRepository
from db.repositories.savings_report_repository import SavingsReportRepository
from matching.matcher import ProductMatcher
from matching.types import MatchResult, RawLineItem
from savings.optimizer import SavingsOptimizer
from savings.summary import build_summary

logger = logging.getLogger(__name__)

PROGRESS_DOWNLOADING = 5
PROGRESS_PARSED = 10
PROGRESS_MATCHING_START = 15
PROGRESS_MATCHING_SPAN = 45
PROGRESS_CALCULATING = 60
PROGRESS_SAVINGS_SAVED = 65
PROGRESS_REPORTING = 78
PROGRESS_SAVING_REPORT = 93

CANCELLED_MESSAGE = "Job cancelled"


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


@lru_cache(maxsize=1)
def _get_continuation_pool() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=4, thread_name_prefix="savings-chunk")


def matching_progress(processed: int, total: int) -> int:
    """
    Map processed items onto the 15-60 progress band.
    """

    if total <= 0:
        return PROGRESS_MATCHING_START
    ratio = min(max(processed / total, 0.0), 1.0)
    return PROGRESS_MATCHING_START + int(ratio * PROGRESS_MATCHING_SPAN)


class SavingsJobOrchestrator:
    """
    Coordinates job creation, chunked background execution, continuation
    and status persistence.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        file_source: FileSource | None = None,
        ingestion_service: DocumentIngestionService | None = None,
        matcher: ProductMatcher | None = None,
        optimizer: SavingsOptimizer | None = None,
        renderer: ReportRenderer | None = None,
        scheduler: ContinuationScheduler | None = None,
        continuation_executor: TaskExecutor | None = None,
        settings: OrchestratorSettings | None = None,
        ingestion_settings: IngestionSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._settings = settings or get_orchestrator_settings()
        self._ingestion_settings = ingestion_settings or get_ingestion_settings()
        self._file_source = file_source or get_file_source()
        self._ingestion_service = ingestion_service or get_document_ingestion_service()
        self._matcher = matcher or _build_matcher()
        self._optimizer = optimizer or _build_optimizer()
        self._renderer = renderer or get_report_renderer()
        self._scheduler = scheduler or self._default_scheduler(continuation_executor)
        self._sleep = sleep

    def _default_scheduler(self, executor: TaskExecutor | None) -> ContinuationScheduler:
        if self._settings.continuation_mode == "http":
            return HTTPContinuationScheduler(
                base_url=self._settings.continuation_base_url,
                token=self._settings.continuation_token,
            )
        return ExecutorContinuationScheduler(
            executor=executor or _get_continuation_pool(),
            task=self.process_chunk,
        )

    # ------------------------------------------------------------------
    # Job submission and queries
    # ------------------------------------------------------------------

    def submit_job(
        self,
        *,
        db: Session,
        executor: TaskExecutor,
        file_name: str,
        file_url: str,
        job_metadata: dict[str, Any] | None = None,
    ) -> ProcessingJob:
        """
        Create a pending job and schedule its first chunk on ``executor``.
        """

        repository = ProcessingJobRepository(db)
        with db.begin():
            job = repository.create_job(
                file_name=file_name,
                file_url=file_url,
                job_metadata=job_metadata,
            )
        log_event(logger, logging.INFO, "savings_job_submitted", job_id=job.id, file_name=file_name)

        try:
            executor.submit(self.process_chunk, job.id, 0)
        except Exception:
            with db.begin():
                repository.mark_failed(
                    job_id=job.id,
                    error_message="Failed to schedule savings job.",
                )
            raise

        return job

    def submit_upload(
        self,
        *,
        db: Session,
        executor: TaskExecutor,
        upload_file: UploadFile,
    ) -> ProcessingJob:
        """
        Persist an uploaded file where later chunks can re-read it, then
        submit a job pointing at it.
        """

        file_path, file_size = self._persist_upload(upload_file)
        file_name = upload_file.filename or os.path.basename(file_path)
        try:
            return self.submit_job(
                db=db,
                executor=executor,
                file_name=file_name,
                file_url=file_path,
                job_metadata={
                    "content_type": upload_file.content_type,
                    "file_size_bytes": file_size,
                },
            )
        except Exception:
            self._delete_file_quietly(file_path)
            raise

    def get_job_status(self, *, db: Session, job_id: uuid.UUID) -> ProcessingJob | None:
        return ProcessingJobRepository(db).get_job(job_id)

    def list_job_statuses(
        self,
        *,
        db: Session,
        limit: int = 100,
        status: str | None = None,
    ) -> list[ProcessingJob]:
        return ProcessingJobRepository(db).list_jobs(limit=limit, status=status)

    def list_job_items(
        self,
        *,
        db: Session,
        job_id: uuid.UUID,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[LineItemMatch]:
        return LineItemRepository(db).list_for_job(job_id, offset=offset, limit=limit)

    def get_report(self, *, db: Session, job_id: uuid.UUID) -> SavingsReport | None:
        return SavingsReportRepository(db).get_for_job(job_id)

    def cancel_job(self, *, db: Session, job_id: uuid.UUID) -> ProcessingJob | None:
        """
        Mark a running or pending job as failed; running chunks stop at
        their next batch boundary. Finished jobs are returned unchanged.
        """

        repository = ProcessingJobRepository(db)
        job = repository.get_job(job_id)
        if job is None:
            return None
        if job.status in ProcessingJobStatus.TERMINAL:
            return job
        repository.mark_failed(job_id=job_id, error_message=CANCELLED_MESSAGE)
        db.commit()
        log_event(logger, logging.INFO, "savings_job_cancelled", job_id=job_id)
        return job

    # ------------------------------------------------------------------
    # Chunk processing
    # ------------------------------------------------------------------

    def process_chunk(self, job_id: uuid.UUID, chunk_index: int = 0) -> None:
        """
        Process one chunk of a job. Never raises; failures are recorded on
        the job row.
        """

        started_at = time.monotonic()
        with self._session_factory() as db:
            jobs = ProcessingJobRepository(db)
            try:
                job = jobs.get_job(job_id)
                if job is None:
                    raise JobNotFoundError(job_id)
                if job.status in ProcessingJobStatus.TERMINAL:
                    logger.info(
                        "Skipping chunk for finished job id=%s chunk=%s status=%s",
                        job_id,
                        chunk_index,
                        job.status,
                    )
                    return

                file_name, file_url = job.file_name, job.file_url
                first_chunk = chunk_index == 0
                claimed = jobs.mark_processing(
                    job_id=job_id,
                    step="Downloading file" if first_chunk else f"Processing chunk {chunk_index + 1}",
                )
                if not claimed:
                    db.rollback()
                    logger.info("Job finished before chunk start id=%s chunk=%s", job_id, chunk_index)
                    return
                if first_chunk:
                    jobs.update_progress(job_id=job_id, progress=PROGRESS_DOWNLOADING)
                db.commit()
                log_event(logger, logging.INFO, "savings_chunk_started", job_id=job_id, chunk=chunk_index)

                document = self._load_document(file_url, file_name)
                items = list(document.items)
                if first_chunk:
                    self._record_parse(db, job_id, document)

                total = len(items)
                chunk_size = self._settings.chunk_size
                start = chunk_index * chunk_size
                chunk_items = items[start:start + chunk_size]

                if not self._match_chunk(db, job_id, chunk_items, processed_before=start, total=total):
                    return

                if start + chunk_size < total:
                    next_chunk = chunk_index + 1
                    jobs.advance_chunk(job_id=job_id, next_chunk=next_chunk)
                    db.commit()
                    log_event(
                        logger,
                        logging.INFO,
                        "savings_chunk_completed",
                        job_id=job_id,
                        chunk=chunk_index,
                        processed=start + len(chunk_items),
                        total=total,
                        elapsed_ms=elapsed_ms(started_at),
                    )
                    self._schedule_continuation(job_id, next_chunk)
                    return

                self._finalize(db, job_id)
                log_event(
                    logger,
                    logging.INFO,
                    "savings_final_chunk_finished",
                    job_id=job_id,
                    chunk=chunk_index,
                    elapsed_ms=elapsed_ms(started_at),
                )
            except (InsufficientDataError, ContinuationSchedulingError) as exc:
                self._mark_job_failed(db=db, job_id=job_id, exc=exc, error_message=str(exc))
            except Exception as exc:
                self._mark_job_failed(db=db, job_id=job_id, exc=exc)

    def _load_document(self, file_url: str, file_name: str) -> ParsedDocument:
        file_bytes = self._file_source.fetch(file_url)
        return self._ingestion_service.parse_document(file_bytes, file_name)

    def _record_parse(self, db: Session, job_id: uuid.UUID, document: ParsedDocument) -> None:
        jobs = ProcessingJobRepository(db)
        items = list(document.items)
        quality = validate_extraction(items)
        jobs.record_parse(
            job_id=job_id,
            total_items=len(items),
            header_row_index=document.header_row_index,
            job_metadata={
                "headers": list(document.headers),
                "sheet_name": document.sheet_name,
                "data_rows": document.data_rows,
                "skipped_rows": document.skipped_rows,
                "column_mapping": document.mapping.to_dict(),
                "extraction_quality": quality.to_dict(),
            },
        )
        jobs.update_progress(job_id=job_id, progress=PROGRESS_PARSED, step=f"Parsed {len(items)} items")
        db.commit()

        try:
            report = validate_minimum_data_requirements(items)
        except InsufficientDataError as exc:
            jobs.merge_metadata(job_id=job_id, values={"data_requirements": exc.report.to_dict()})
            db.commit()
            raise

        jobs.merge_metadata(job_id=job_id, values={"data_requirements": report.to_dict()})
        jobs.update_progress(job_id=job_id, progress=PROGRESS_MATCHING_START, step="Matching products")
        db.commit()

    def _match_chunk(
        self,
        db: Session,
        job_id: uuid.UUID,
        chunk_items: Sequence[RawLineItem],
        *,
        processed_before: int,
        total: int,
    ) -> bool:
        """
        Match and persist one chunk in batches. Returns False when the job
        stopped being ``processing`` (cancelled) before the chunk finished.
        """

        jobs = ProcessingJobRepository(db)
        lines = LineItemRepository(db)

        existing = lines.existing_row_numbers(job_id)
        pending = [item for item in chunk_items if item.row_number not in existing]
        processed = processed_before + len(chunk_items) - len(pending)
        if len(pending) < len(chunk_items):
            logger.info(
                "Skipping already persisted rows job_id=%s skipped=%s",
                job_id,
                len(chunk_items) - len(pending),
            )

        batch_size = self._settings.batch_size
        for offset in range(0, len(pending), batch_size):
            if jobs.get_status(job_id) != ProcessingJobStatus.PROCESSING:
                log_event(logger, logging.INFO, "savings_chunk_stopped", job_id=job_id, processed=processed)
                return False

            batch = pending[offset:offset + batch_size]
            results = self._matcher.match_batch(batch)
            self._persist_batch(db, job_id, results)

            processed += len(batch)
            jobs.update_progress(
                job_id=job_id,
                progress=matching_progress(processed, total),
                step=f"Matched {processed} of {total} items",
                processed_items=processed,
            )
            db.commit()

        jobs.update_progress(job_id=job_id, progress=matching_progress(processed, total), processed_items=processed)
        db.commit()
        return True

    def _persist_batch(self, db: Session, job_id: uuid.UUID, results: Sequence[MatchResult]) -> None:
        lines = LineItemRepository(db)
        try:
            lines.add_many(match_result_to_record(job_id, result) for result in results)
            db.commit()
            return
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Bulk insert failed, retrying row by row job_id=%s rows=%s error=%s",
                job_id,
                len(results),
                exc,
            )

        for result in results:
            record = match_result_to_record(job_id, result)
            try:
                lines.add_one(record)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log_event(
                    logger,
                    logging.ERROR,
                    "line_item_insert_failed",
                    job_id=job_id,
                    row_number=result.item.row_number,
                    field_types=_describe_record(record),
                    error=f"{type(exc).__name__}: {exc}",
                )

    def _schedule_continuation(self, job_id: uuid.UUID, chunk_index: int) -> None:
        attempts = max(1, self._settings.continuation_max_attempts)
        delay = self._settings.continuation_backoff_initial_seconds
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                self._scheduler.schedule(job_id, chunk_index)
                return
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "Continuation failed job_id=%s chunk=%s attempt=%s/%s error=%s",
                    job_id,
                    chunk_index,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    self._sleep(delay)
                    delay *= self._settings.continuation_backoff_multiplier

        raise ContinuationSchedulingError(
            f"Failed to schedule continuation for chunk {chunk_index} after {attempts} attempts: {last_error}"
        )

    def _finalize(self, db: Session, job_id: uuid.UUID) -> None:
        jobs = ProcessingJobRepository(db)
        lines = LineItemRepository(db)

        if jobs.get_status(job_id) != ProcessingJobStatus.PROCESSING:
            log_event(logger, logging.INFO, "savings_finalize_skipped", job_id=job_id)
            return

        jobs.update_progress(job_id=job_id, progress=PROGRESS_CALCULATING, step="Calculating savings")
        db.commit()

        records = lines.list_for_job(job_id)
        analyses = []
        for record in records:
            analysis = self._optimizer.optimize(record_to_match_result(record))
            apply_analysis(record, analysis)
            analyses.append(analysis)
        jobs.update_progress(job_id=job_id, progress=PROGRESS_SAVINGS_SAVED, step="Savings calculated")
        db.commit()

        summary = build_summary(analyses)
        matching_quality = validate_matching([analysis.match for analysis in analyses])
        jobs.merge_metadata(job_id=job_id, values={"matching_quality": matching_quality.to_dict()})
        jobs.update_progress(job_id=job_id, progress=PROGRESS_REPORTING, step="Generating report")
        db.commit()

        report_url = self._renderer.render(job_id, summary, analyses)
        jobs.update_progress(job_id=job_id, progress=PROGRESS_SAVING_REPORT, step="Saving report")
        SavingsReportRepository(db).upsert(job_id=job_id, summary=summary, report_url=report_url)
        completed_job = jobs.mark_completed(job_id=job_id, report_url=report_url)
        if completed_job is None:
            raise JobNotFoundError(job_id)
        db.commit()

        log_event(
            logger,
            logging.INFO,
            "savings_job_completed",
            job_id=job_id,
            total_items=summary.total_items,
            matched_items=summary.matched_items,
            total_savings=summary.total_savings,
            report_url=report_url,
        )

    def _mark_job_failed(
        self,
        *,
        db: Session,
        job_id: uuid.UUID,
        exc: Exception,
        error_message: str | None = None,
    ) -> None:
        repository = ProcessingJobRepository(db)
        error_message = error_message or f"{type(exc).__name__}: {exc}"
        logger.exception("Savings job failed id=%s error=%s", job_id, error_message)
        try:
            db.rollback()
            failed_job = repository.mark_failed(
                job_id=job_id,
                error_message=error_message[:2000],
            )
            if failed_job is None:
                logger.error("Unable to mark savings job as failed because it was not found id=%s", job_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed savings job state id=%s", job_id)

    # ------------------------------------------------------------------
    # Upload storage
    # ------------------------------------------------------------------

    def _persist_upload(self, upload_file: UploadFile) -> tuple[str, int]:
        file_name = upload_file.filename or "upload.csv"
        _, ext = os.path.splitext(file_name)
        suffix = ext if ext else ".csv"
        upload_dir = self._ingestion_settings.upload_dir
        os.makedirs(upload_dir, exist_ok=True)
        upload_file.file.seek(0)

        with tempfile.NamedTemporaryFile(
            delete=False,
            dir=upload_dir,
            prefix="savings_job_",
            suffix=suffix,
        ) as temp_file:
            while True:
                chunk = upload_file.file.read(1024 * 1024)
                if not chunk:
                    break
                temp_file.write(chunk)
            temp_path = temp_file.name
            file_size = temp_file.tell()

        upload_file.file.seek(0)
        return os.path.abspath(temp_path), file_size

    def _delete_file_quietly(self, file_path: str) -> None:
        try:
            os.remove(file_path)
        except OSError:
            return


def _describe_record(record: LineItemMatch) -> dict[str, str]:
    return {
        column.key: type(getattr(record, column.key, None)).__name__
        for column in LineItemMatch.__table__.columns
        if hasattr(record, column.key)
    }


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _build_catalog():
    from db.repositories.catalog_repository import SQLCatalogLookup
    from db.session import get_session_factory

    return SQLCatalogLookup(get_session_factory())


def _build_matcher() -> ProductMatcher:
    matching_settings = get_matching_settings()
    embedding_settings = get_embedding_settings()

    embedding_provider = None
    if embedding_settings.enabled:
        from matching.embeddings import OpenAIEmbeddingProvider

        embedding_provider = OpenAIEmbeddingProvider(
            model=embedding_settings.model,
            api_key=embedding_settings.api_key,
            base_url=embedding_settings.base_url,
            max_retries=embedding_settings.max_retries,
            backoff_initial_seconds=embedding_settings.backoff_initial_seconds,
        )

    ai_matcher = None
    if matching_settings.ai_enabled:
        from llm_extraction.adapter import create_llm_adapter
        from matching.ai_assist import AIAttributeMatcher

        llm_settings = get_llm_settings()
        ai_matcher = AIAttributeMatcher(
            adapter=create_llm_adapter(
                llm_settings.adapter,
                model=llm_settings.model,
                max_tokens=llm_settings.max_tokens,
                api_key=llm_settings.api_key,
                base_url=llm_settings.base_url,
            ),
            max_retries=llm_settings.max_retries,
            max_score=matching_settings.ai_max_score,
        )

    return ProductMatcher(
        catalog=_build_catalog(),
        settings=matching_settings,
        embedding_provider=embedding_provider,
        ai_matcher=ai_matcher,
    )


def _build_optimizer() -> SavingsOptimizer:
    return SavingsOptimizer(catalog=_build_catalog(), settings=get_optimizer_settings())


@lru_cache(maxsize=1)
def get_savings_job_orchestrator() -> SavingsJobOrchestrator:
    return SavingsJobOrchestrator()
