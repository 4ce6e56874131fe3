"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

import hmac
from pathlib import PurePosixPath

from fastapi import File, Header, HTTPException, UploadFile, status

from app.config import get_orchestrator_settings

PURCHASE_FILE_EXTENSIONS = {".csv", ".tsv", ".txt", ".xlsx", ".xlsm"}
PURCHASE_FILE_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/tab-separated-values",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}
LEGACY_EXCEL_DETAIL = "Legacy .xls workbooks are not supported. Save the file as .xlsx or .csv and upload again."


def validate_purchase_file_name(file_name: str, content_type: str | None = None) -> None:
    """
    Accept CSV/TSV and .xlsx names (or matching MIME types); reject legacy
    .xls explicitly.
    """

    extension = PurePosixPath(file_name.strip().lower()).suffix
    if extension == ".xls":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=LEGACY_EXCEL_DETAIL)

    is_known_extension = extension in PURCHASE_FILE_EXTENSIONS
    is_known_content_type = (content_type or "").strip().lower() in PURCHASE_FILE_CONTENT_TYPES
    if not is_known_extension and not is_known_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV and Excel (.xlsx) files are allowed.",
        )


def get_optional_purchase_file(file: UploadFile | None = File(default=None)) -> UploadFile | None:
    """
    Validate the uploaded purchase file when one was sent.
    """

    if file is None:
        return None
    validate_purchase_file_name(file.filename or "", file.content_type)
    return file


def verify_continuation_token(authorization: str | None = Header(default=None)) -> None:
    """
    Check the bearer token on continuation calls when one is configured.
    """

    expected = get_orchestrator_settings().continuation_token
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid continuation token.",
        )
