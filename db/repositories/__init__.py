"""
Repository layer exports.
"""

from db.repositories.catalog_repository import SQLCatalogLookup, to_catalog_product
from db.repositories.errors import JobNotFoundError, LineItemPersistenceError, SavingsRepositoryError
from db.repositories.line_item_repository import LineItemRepository
from db.repositories.processing_job_repository import ProcessingJobRepository
from db.repositories.savings_report_repository import SavingsReportRepository

__all__ = [
    "LineItemRepository",
    "ProcessingJobRepository",
    "SavingsReportRepository",
    "SQLCatalogLookup",
    "to_catalog_product",
    "JobNotFoundError",
    "LineItemPersistenceError",
    "SavingsRepositoryError",
]
