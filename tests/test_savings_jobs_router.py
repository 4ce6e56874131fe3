"""
tests/test_savings_jobs_router.py

HTTP surface of the savings job API, backed by SQLite and the in-memory
catalog. Background tasks run inside the TestClient request cycle.
"""

from __future__ import annotations

import uuid
from pathlib import Path

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.api import dependencies
from app.api.dependencies import LEGACY_EXCEL_DETAIL, verify_continuation_token
from app.api.routers import savings_jobs_router
from app.config import IngestionSettings, OrchestratorSettings, ReportSettings
from app.services.document_ingestion_service import DocumentIngestionService
from app.services.file_source import URLFileSource
from app.services.report_renderer import JSONReportRenderer
from app.services.savings_job_orchestrator import SavingsJobOrchestrator, get_savings_job_orchestrator
from db.base import Base
from db.models.line_item_match import LineItemMatch
from db.models.processing_job import ProcessingJob, ProcessingJobStatus
from db.models.savings_report import SavingsReport
from db.repositories.processing_job_repository import ProcessingJobRepository
from db.session import get_db
from matching.matcher import ProductMatcher
from savings.optimizer import SavingsOptimizer

PURCHASE_CSV = (
    "SKU,Item Description,Qty,Unit Price\n"
    "N9J90AN,HP 64 Black Ink Cartridge,5,\n"
    "CF258A,HP 58A Black Toner Cartridge,2,$129.99\n"
    "ZZ999,Mystery Desk Widget,3,12.50\n"
    "N9J92AN,HP 64XL Black Ink Cartridge,1,35.00\n"
    "CF258A,HP 58A Black Toner Cartridge,1,99.00\n"
)


class ImmediateExecutor:
    def submit(self, task, *args, **kwargs):
        task(*args, **kwargs)


@pytest.fixture()
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = create_engine(f"sqlite:///{tmp_path / 'jobs.db'}")
    Base.metadata.create_all(
        engine,
        tables=[ProcessingJob.__table__, LineItemMatch.__table__, SavingsReport.__table__],
    )
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture()
def orchestrator(session_factory, catalog, tmp_path: Path) -> SavingsJobOrchestrator:
    return SavingsJobOrchestrator(
        session_factory=session_factory,
        file_source=URLFileSource(),
        ingestion_service=DocumentIngestionService(),
        matcher=ProductMatcher(catalog=catalog),
        optimizer=SavingsOptimizer(catalog=catalog),
        renderer=JSONReportRenderer(
            settings=ReportSettings(output_dir=str(tmp_path / "reports"), company_name="Acme")
        ),
        continuation_executor=ImmediateExecutor(),
        settings=OrchestratorSettings(chunk_size=2, batch_size=2),
        ingestion_settings=IngestionSettings(upload_dir=str(tmp_path / "uploads")),
        sleep=lambda seconds: None,
    )


@pytest.fixture()
def client(session_factory, orchestrator) -> TestClient:
    application = FastAPI()
    application.include_router(savings_jobs_router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_savings_job_orchestrator] = lambda: orchestrator
    with TestClient(application) as test_client:
        yield test_client


def _upload(client: TestClient, name: str = "orders.csv", content: str = PURCHASE_CSV, content_type: str = "text/csv"):
    return client.post(
        "/savings-jobs",
        files={"file": (name, content.encode("utf-8"), content_type)},
    )


def _create_pending_job(session_factory, tmp_path: Path) -> uuid.UUID:
    path = tmp_path / "pending.csv"
    path.write_text(PURCHASE_CSV, encoding="utf-8")
    with session_factory() as db:
        job = ProcessingJobRepository(db).create_job(file_name=path.name, file_url=str(path))
        db.commit()
        return job.id


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestCreateSavingsJob:
    def test_upload_runs_job_to_completion(self, client: TestClient) -> None:
        response = _upload(client)

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == ProcessingJobStatus.PENDING
        assert body["file_name"] == "orders.csv"

        status_response = client.get(f"/savings-jobs/{body['job_id']}")
        assert status_response.status_code == 200
        job = status_response.json()
        assert job["status"] == ProcessingJobStatus.COMPLETED
        assert job["progress"] == 100
        assert job["total_items"] == 5
        assert job["metadata"]["file_size_bytes"] == len(PURCHASE_CSV.encode("utf-8"))
        assert job["summary"]["total_savings"] == pytest.approx(135.19)
        assert job["summary"]["total_items"] == 5
        assert job["report_url"].startswith("file://")

    def test_items_are_paged_in_row_order(self, client: TestClient) -> None:
        job_id = _upload(client).json()["job_id"]

        response = client.get(f"/savings-jobs/{job_id}/items", params={"offset": 1, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["offset"] == 1
        assert [item["row_number"] for item in body["items"]] == [2, 3]
        assert body["items"][0]["raw_sku"] == "CF258A"
        assert body["items"][0]["savings"] == pytest.approx(61.98)

    def test_list_jobs_with_status_filter(self, client: TestClient) -> None:
        _upload(client)

        completed = client.get("/savings-jobs", params={"status": ProcessingJobStatus.COMPLETED}).json()
        failed = client.get("/savings-jobs", params={"status": ProcessingJobStatus.FAILED}).json()

        assert len(completed["jobs"]) == 1
        assert failed["jobs"] == []

    def test_legacy_xls_rejected(self, client: TestClient) -> None:
        response = _upload(client, name="orders.xls", content_type="application/vnd.ms-excel")

        assert response.status_code == 400
        assert response.json()["detail"] == LEGACY_EXCEL_DETAIL

    def test_unknown_file_type_rejected(self, client: TestClient) -> None:
        response = _upload(client, name="orders.pdf", content_type="application/pdf")

        assert response.status_code == 400
        assert response.json()["detail"] == "Only CSV and Excel (.xlsx) files are allowed."

    def test_requires_file_or_url(self, client: TestClient) -> None:
        response = client.post("/savings-jobs", data={"file_name": "orders.csv"})

        assert response.status_code == 422
        assert response.json()["detail"] == "Provide either a file upload or a file_url."

    def test_file_url_must_be_http(self, client: TestClient) -> None:
        response = client.post("/savings-jobs", data={"file_url": "ftp://files.example.com/orders.csv"})

        assert response.status_code == 422
        assert response.json()["detail"] == "file_url must be an http(s) URL."


# ---------------------------------------------------------------------------
# Status, continuation and cancellation
# ---------------------------------------------------------------------------


class TestSavingsJobLifecycle:
    def test_unknown_job_returns_404(self, client: TestClient) -> None:
        job_id = uuid.uuid4()

        response = client.get(f"/savings-jobs/{job_id}")

        assert response.status_code == 404
        assert response.json()["detail"] == f"Savings job not found: {job_id}"

    def test_chunk_endpoint_processes_pending_job(self, client: TestClient, session_factory, tmp_path: Path) -> None:
        job_id = _create_pending_job(session_factory, tmp_path)

        response = client.post(f"/savings-jobs/{job_id}/chunks/0")

        assert response.status_code == 202
        assert response.json()["chunk_index"] == 0
        assert client.get(f"/savings-jobs/{job_id}").json()["status"] == ProcessingJobStatus.COMPLETED

    def test_chunk_for_finished_job_conflicts(self, client: TestClient) -> None:
        job_id = _upload(client).json()["job_id"]

        response = client.post(f"/savings-jobs/{job_id}/chunks/1")

        assert response.status_code == 409

    def test_negative_chunk_index_rejected(self, client: TestClient, session_factory, tmp_path: Path) -> None:
        job_id = _create_pending_job(session_factory, tmp_path)

        response = client.post(f"/savings-jobs/{job_id}/chunks/-1")

        assert response.status_code == 422

    def test_cancel_pending_job(self, client: TestClient, session_factory, tmp_path: Path) -> None:
        job_id = _create_pending_job(session_factory, tmp_path)

        response = client.post(f"/savings-jobs/{job_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == ProcessingJobStatus.FAILED

    def test_cancel_completed_job_conflicts(self, client: TestClient) -> None:
        job_id = _upload(client).json()["job_id"]

        assert client.post(f"/savings-jobs/{job_id}/cancel").status_code == 409

    def test_cancel_unknown_job_returns_404(self, client: TestClient) -> None:
        assert client.post(f"/savings-jobs/{uuid.uuid4()}/cancel").status_code == 404


# ---------------------------------------------------------------------------
# Continuation token
# ---------------------------------------------------------------------------


class TestVerifyContinuationToken:
    def test_no_token_configured_allows_call(self, monkeypatch) -> None:
        monkeypatch.setattr(dependencies, "get_orchestrator_settings", lambda: OrchestratorSettings())

        assert verify_continuation_token(authorization=None) is None

    def test_wrong_token_rejected(self, monkeypatch) -> None:
        monkeypatch.setattr(
            dependencies,
            "get_orchestrator_settings",
            lambda: OrchestratorSettings(continuation_token="secret"),
        )

        with pytest.raises(HTTPException) as exc_info:
            verify_continuation_token(authorization="Bearer nope")
        assert exc_info.value.status_code == 401

    def test_matching_token_accepted(self, monkeypatch) -> None:
        monkeypatch.setattr(
            dependencies,
            "get_orchestrator_settings",
            lambda: OrchestratorSettings(continuation_token="secret"),
        )

        assert verify_continuation_token(authorization="Bearer secret") is None
