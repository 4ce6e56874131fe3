"""
Repository for per-row match and recommendation persistence.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.line_item_match import LineItemMatch


class LineItemRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add_many(self, records: Iterable[LineItemMatch]) -> int:
        """
        Stage a batch of rows and flush them in one round trip.
        """

        batch = list(records)
        self._session.add_all(batch)
        self._session.flush()
        return len(batch)

    def add_one(self, record: LineItemMatch) -> LineItemMatch:
        self._session.add(record)
        self._session.flush()
        return record

    def existing_row_numbers(self, job_id: uuid.UUID) -> set[int]:
        stmt = select(LineItemMatch.row_number).where(LineItemMatch.job_id == job_id)
        return set(self._session.scalars(stmt).all())

    def count_for_job(self, job_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(LineItemMatch).where(LineItemMatch.job_id == job_id)
        return int(self._session.execute(stmt).scalar_one())

    def list_for_job(
        self,
        job_id: uuid.UUID,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[LineItemMatch]:
        stmt = (
            select(LineItemMatch)
            .where(LineItemMatch.job_id == job_id)
            .order_by(LineItemMatch.row_number.asc())
            .offset(max(0, offset))
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
