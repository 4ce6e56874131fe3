"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.line_item_match import LineItemMatch
from db.models.master_product import MasterProduct
from db.models.processing_job import ProcessingJob, ProcessingJobStatus
from db.models.savings_report import SavingsReport

__all__ = [
    "LineItemMatch",
    "MasterProduct",
    "ProcessingJob",
    "ProcessingJobStatus",
    "SavingsReport",
]
