"""
Repository for aggregate savings reports.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.savings_report import SavingsReport
from savings.types import SavingsSummary


class SavingsReportRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_for_job(self, job_id: uuid.UUID) -> SavingsReport | None:
        stmt = select(SavingsReport).where(SavingsReport.job_id == job_id)
        return self._session.scalars(stmt).first()

    def upsert(
        self,
        *,
        job_id: uuid.UUID,
        summary: SavingsSummary,
        report_url: str | None,
    ) -> SavingsReport:
        """
        Store the summary for a job, replacing an earlier one if the final
        chunk runs twice.
        """

        report = self.get_for_job(job_id)
        if report is None:
            report = SavingsReport(job_id=job_id, summary={})
            self._session.add(report)
        report.total_current_cost = summary.total_current_cost
        report.total_optimized_cost = summary.total_optimized_cost
        report.total_savings = summary.total_savings
        report.savings_percentage = summary.savings_percentage
        report.total_items = summary.total_items
        report.matched_items = summary.matched_items
        report.items_with_savings = summary.items_with_savings
        report.summary = summary.to_dict()
        report.report_url = report_url
        self._session.flush()
        return report
