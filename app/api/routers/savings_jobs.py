"""
Savings job submission, status, item listing and continuation endpoints.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.dependencies import (
    get_optional_purchase_file,
    validate_purchase_file_name,
    verify_continuation_token,
)
from app.schemas.savings_jobs import (
    ChunkAcceptedResponse,
    LineItemListResponse,
    LineItemResponse,
    SavingsJobAcceptedResponse,
    SavingsJobListResponse,
    SavingsJobStatusResponse,
    SavingsSummaryResponse,
)
from app.services.savings_job_orchestrator import (
    FastAPIBackgroundTaskExecutor,
    SavingsJobOrchestrator,
    get_savings_job_orchestrator,
)
from db.models.line_item_match import LineItemMatch
from db.models.processing_job import ProcessingJob, ProcessingJobStatus
from db.models.savings_report import SavingsReport
from db.session import get_db

router = APIRouter(prefix="/savings-jobs", tags=["savings-jobs"])


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SavingsJobAcceptedResponse,
)
def create_savings_job(
    background_tasks: BackgroundTasks,
    file: UploadFile | None = Depends(get_optional_purchase_file),
    file_url: str | None = Form(default=None, description="Remote purchase file URL, used when no file is uploaded"),
    file_name: str | None = Form(default=None, description="Optional file name for file_url submissions"),
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> SavingsJobAcceptedResponse:
    executor = FastAPIBackgroundTaskExecutor(background_tasks)

    if file is not None:
        try:
            job = orchestrator.submit_upload(db=db, executor=executor, upload_file=file)
        finally:
            file.file.close()
    elif file_url:
        parsed = urlparse(file_url.strip())
        if parsed.scheme not in {"http", "https"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="file_url must be an http(s) URL.",
            )
        resolved_name = (file_name or PurePosixPath(unquote(parsed.path)).name).strip()
        validate_purchase_file_name(resolved_name)
        job = orchestrator.submit_job(
            db=db,
            executor=executor,
            file_name=resolved_name,
            file_url=file_url.strip(),
        )
    else:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide either a file upload or a file_url.",
        )

    return SavingsJobAcceptedResponse(
        job_id=job.id,
        status=job.status,
        file_name=job.file_name,
        created_at=job.created_at,
    )


@router.get("", response_model=SavingsJobListResponse)
def list_savings_jobs(
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> SavingsJobListResponse:
    jobs = orchestrator.list_job_statuses(db=db, limit=limit, status=status_filter)
    return SavingsJobListResponse(jobs=[_to_status_response(job) for job in jobs])


@router.get("/{job_id}", response_model=SavingsJobStatusResponse)
def get_savings_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> SavingsJobStatusResponse:
    job = _require_job(orchestrator, db, job_id)
    report = orchestrator.get_report(db=db, job_id=job_id)
    return _to_status_response(job, report)


@router.get("/{job_id}/items", response_model=LineItemListResponse)
def list_savings_job_items(
    job_id: UUID,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> LineItemListResponse:
    _require_job(orchestrator, db, job_id)
    records = orchestrator.list_job_items(db=db, job_id=job_id, offset=offset, limit=limit)
    return LineItemListResponse(
        job_id=job_id,
        offset=offset,
        items=[_to_item_response(record) for record in records],
    )


@router.post(
    "/{job_id}/chunks/{chunk_index}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ChunkAcceptedResponse,
    dependencies=[Depends(verify_continuation_token)],
)
def continue_savings_job(
    job_id: UUID,
    chunk_index: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> ChunkAcceptedResponse:
    if chunk_index < 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="chunk_index must be zero or greater.",
        )
    job = _require_job(orchestrator, db, job_id)
    if job.status in ProcessingJobStatus.TERMINAL:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Savings job {job_id} is already {job.status}.",
        )

    background_tasks.add_task(orchestrator.process_chunk, job_id, chunk_index)
    return ChunkAcceptedResponse(job_id=job_id, chunk_index=chunk_index, status=job.status)


@router.post("/{job_id}/cancel", response_model=SavingsJobStatusResponse)
def cancel_savings_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: SavingsJobOrchestrator = Depends(get_savings_job_orchestrator),
) -> SavingsJobStatusResponse:
    job = orchestrator.cancel_job(db=db, job_id=job_id)
    if job is None:
        raise _not_found(job_id)
    if job.status == ProcessingJobStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Savings job {job_id} is already completed.",
        )
    return _to_status_response(job)


def _require_job(orchestrator: SavingsJobOrchestrator, db: Session, job_id: UUID) -> ProcessingJob:
    job = orchestrator.get_job_status(db=db, job_id=job_id)
    if job is None:
        raise _not_found(job_id)
    return job


def _not_found(job_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Savings job not found: {job_id}",
    )


def _to_status_response(job: ProcessingJob, report: SavingsReport | None = None) -> SavingsJobStatusResponse:
    summary = None
    if report is not None:
        summary = SavingsSummaryResponse(
            total_current_cost=report.total_current_cost,
            total_optimized_cost=report.total_optimized_cost,
            total_savings=report.total_savings,
            savings_percentage=report.savings_percentage,
            total_items=report.total_items,
            matched_items=report.matched_items,
            items_with_savings=report.items_with_savings,
            details=report.summary or {},
        )
    return SavingsJobStatusResponse(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        current_step=job.current_step,
        current_chunk=job.current_chunk,
        file_name=job.file_name,
        total_items=job.total_items,
        processed_items=job.processed_items,
        header_row_index=job.header_row_index,
        report_url=job.report_url,
        error_message=job.error_message,
        metadata=job.job_metadata,
        summary=summary,
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


def _to_item_response(record: LineItemMatch) -> LineItemResponse:
    return LineItemResponse(
        row_number=record.row_number,
        raw_product_name=record.raw_product_name,
        raw_sku=record.raw_sku,
        quantity=record.quantity,
        unit_price=record.unit_price,
        uom=record.uom,
        matched_product_id=record.matched_product_id,
        matched_product=record.matched_product,
        match_method=record.match_method,
        match_score=record.match_score,
        match_type=record.match_type,
        price_source=record.price_source,
        current_total=record.current_total,
        recommendation_type=record.recommendation_type,
        recommendation=record.recommendation,
        savings=record.savings,
        environmental=record.environmental,
    )
