"""Read and upsert access to nightly aggregate rows."""

import logging

from datetime import date

from sqlalchemy import func, select

from pneumaflow.database.models import NightlyAggregate
from pneumaflow.database.session import Database
from pneumaflow.models.aggregate import DataBounds, NightlyAggregateRecord

logger = logging.getLogger(__name__)


class AggregateRepository:
    """
    Nightly aggregate store keyed by calendar date.

    Implements the ingestion sink: each session's record replaces any
    existing row for the same date in full.
    """

    def __init__(self, database: Database):
        self.database = database

    def upsert(self, record: NightlyAggregateRecord) -> str | None:
        """
        Insert or replace the row for ``record.date``.

        Args:
            record: Complete nightly aggregate

        Returns:
            Session id of the replaced row when it differs from the new one,
            otherwise None
        """
        values = record.model_dump()
        replaced: str | None = None

        with self.database.session_scope() as session:
            row = session.scalars(
                select(NightlyAggregate).where(NightlyAggregate.date == record.date)
            ).first()

            if row is None:
                session.add(NightlyAggregate(**values))
                logger.debug(f"Inserted nightly aggregate for {record.date}")
            else:
                if row.session_id != record.session_id:
                    replaced = row.session_id
                for key, value in values.items():
                    setattr(row, key, value)
                logger.info(
                    f"Replaced nightly aggregate for {record.date} "
                    f"(session {row.session_id})"
                )

        return replaced

    def get_by_date(self, day: date) -> NightlyAggregate | None:
        with self.database.session_scope() as session:
            return session.scalars(
                select(NightlyAggregate).where(NightlyAggregate.date == day)
            ).first()

    def get_by_session_id(self, session_id: str) -> NightlyAggregate | None:
        with self.database.session_scope() as session:
            return session.scalars(
                select(NightlyAggregate).where(
                    NightlyAggregate.session_id == session_id
                )
            ).first()

    def list_range(
        self, start: date | None = None, end: date | None = None
    ) -> list[NightlyAggregate]:
        """
        List nightly rows ordered by date, optionally bounded (inclusive).
        """
        query = select(NightlyAggregate).order_by(NightlyAggregate.date)
        if start is not None:
            query = query.where(NightlyAggregate.date >= start)
        if end is not None:
            query = query.where(NightlyAggregate.date <= end)

        with self.database.session_scope() as session:
            return list(session.scalars(query).all())

    def data_bounds(self) -> DataBounds | None:
        """
        Get the first and last dates with data.

        Returns:
            DataBounds, or None if the table is empty
        """
        with self.database.session_scope() as session:
            min_date, max_date, total = session.execute(
                select(
                    func.min(NightlyAggregate.date),
                    func.max(NightlyAggregate.date),
                    func.count(NightlyAggregate.id),
                )
            ).one()

        if min_date is None or max_date is None:
            return None
        return DataBounds(min_date=min_date, max_date=max_date, total_nights=total)
