"""
app/services package marker.
"""

from app.services.continuation import (
    ContinuationScheduler,
    ContinuationSchedulingError,
    ExecutorContinuationScheduler,
    HTTPContinuationScheduler,
)
from app.services.document_ingestion_service import (
    DocumentIngestionService,
    DocumentParseError,
    ParsedDocument,
    UnsupportedDocumentError,
    get_document_ingestion_service,
)
from app.services.file_source import FileSource, FileSourceError, URLFileSource, get_file_source
from app.services.report_renderer import JSONReportRenderer, ReportRenderer, ReportRenderingError

__all__ = [
    "ContinuationScheduler",
    "ContinuationSchedulingError",
    "DocumentIngestionService",
    "DocumentParseError",
    "ExecutorContinuationScheduler",
    "FileSource",
    "FileSourceError",
    "HTTPContinuationScheduler",
    "JSONReportRenderer",
    "ParsedDocument",
    "ReportRenderer",
    "ReportRenderingError",
    "URLFileSource",
    "UnsupportedDocumentError",
    "get_document_ingestion_service",
    "get_file_source",
]
