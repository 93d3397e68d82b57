"""
Streaming CSV ingestion into the columnar and aggregate tiers.

Rows are consumed one at a time. Samples for the live session are buffered
and flushed to the columnar store in fixed-size batches, so memory stays
bounded no matter how long the export is. When the calendar date changes
the live session is finished: final flush, nightly aggregate, seal,
then sink upsert.
"""

import logging
import threading
import uuid

from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Protocol

from pneumaflow.aggregation.accumulator import SessionAccumulator
from pneumaflow.aggregation.computer import compute_nightly_aggregate
from pneumaflow.aggregation.sample_rate import SampleRateEstimator
from pneumaflow.config import Settings
from pneumaflow.constants import (
    COLUMN_FLOW_LIMITATION,
    COLUMN_LEAK_RATE,
    COLUMN_PRESSURE,
)
from pneumaflow.errors import IngestCancelledError
from pneumaflow.ingest.csv_reader import CsvRowReader, ParsedRow
from pneumaflow.models.aggregate import DateRange, IngestReport, NightlyAggregateRecord
from pneumaflow.storage.columnar import ColumnarStore

logger = logging.getLogger(__name__)


class AggregateSink(Protocol):
    """Destination for finished nightly aggregates."""

    def upsert(self, record: NightlyAggregateRecord) -> str | None:
        """
        Store the record, replacing any row for the same date.

        Returns:
            Session id of the replaced row, if it differs from the new one
        """
        ...


def new_session_id(day: date) -> str:
    """Session id of the form YYYY-MM-DD-<8 hex chars>."""
    return f"{day.isoformat()}-{uuid.uuid4().hex[:8]}"


class StreamingIngestor:
    """
    Ingest CPAP CSV exports session by session.

    Failures are isolated per session: a failed flush, aggregate, seal or upsert
    drops that session's columnar files, records the error and discards the
    rest of that date's rows, and ingestion continues with the next date.

    Example:
        >>> ingestor = StreamingIngestor(store, AggregateRepository(database))
        >>> report = ingestor.ingest_file(Path("export.csv"))
        >>> report.nights_imported
        3
    """

    def __init__(
        self,
        store: ColumnarStore,
        sink: AggregateSink,
        settings: Settings | None = None,
    ):
        self.store = store
        self.sink = sink
        self.settings = settings or Settings()

    def ingest_file(
        self, path: Path | str, cancel_event: threading.Event | None = None
    ) -> IngestReport:
        """
        Ingest a CSV file from disk.

        Args:
            path: CSV export with a header row
            cancel_event: Optional event polled between rows

        Returns:
            IngestReport (never raises for data or I/O problems)
        """
        path = Path(path)
        logger.info(f"Ingesting {path}")

        try:
            with open(path, encoding="utf-8-sig", errors="replace", newline="") as f:
                return self.ingest_lines(f, cancel_event=cancel_event)
        except OSError as e:
            logger.error(f"Cannot read {path}: {e}")
            return IngestReport(errors=[f"Cannot read {path}: {e}"])

    def ingest_lines(
        self,
        lines: Iterable[str],
        cancel_event: threading.Event | None = None,
    ) -> IngestReport:
        """
        Ingest CSV text supplied as an iterable of lines.

        Args:
            lines: Header line followed by data lines
            cancel_event: Optional event polled between rows. When set, the
                live session is dropped unsealed and ingestion stops.

        Returns:
            Best-effort IngestReport
        """
        report = IngestReport()
        reader = CsvRowReader(lines)
        current: SessionAccumulator | None = None
        failed_dates: set[date] = set()
        dates: set[date] = set()

        try:
            for row in reader.rows():
                if cancel_event is not None and cancel_event.is_set():
                    raise IngestCancelledError("Ingestion cancelled")

                dates.add(row.date)
                if row.date in failed_dates:
                    continue

                if current is None or row.date != current.date:
                    if current is not None:
                        self._finish_session(current, report, failed_dates)
                    current = self._start_session(row.date)

                if row.is_event:
                    current.add_event(row.to_event())
                    report.events_imported += 1
                    continue

                self._add_sample(current, row)
                report.samples_processed += 1

                if len(current.buffer) >= self.settings.batch_size:
                    if not self._flush_batch(current, report, failed_dates):
                        current = None

            if current is not None:
                self._finish_session(current, report, failed_dates)
                current = None

        except IngestCancelledError as e:
            logger.warning(f"{e}; discarding unsealed session")
            report.errors.append(str(e))
        except (ValueError, OSError) as e:
            logger.error(f"Streaming ingest failed: {e}")
            report.errors.append(f"Streaming ingest failed: {e}")
        finally:
            if current is not None:
                self._discard_session(current)

        report.malformed_rows = reader.malformed_rows
        if dates:
            ordered = sorted(dates)
            report.date_range = DateRange(
                start=ordered[0].isoformat(), end=ordered[-1].isoformat()
            )

        logger.info(
            f"Ingest complete: {report.nights_imported} nights, "
            f"{report.samples_processed:,} samples, {report.events_imported} events, "
            f"{report.malformed_rows} malformed rows, {len(report.errors)} errors"
        )
        return report

    def _start_session(self, day: date) -> SessionAccumulator:
        session_id = new_session_id(day)
        logger.debug(f"Starting session {session_id}")
        return SessionAccumulator(
            session_id=session_id,
            date=day,
            rate_estimator=SampleRateEstimator(self.settings.default_sample_rate_hz),
        )

    @staticmethod
    def _add_sample(accumulator: SessionAccumulator, row: ParsedRow) -> None:
        accumulator.add_sample(
            row.to_sample(),
            pressure=row.get(COLUMN_PRESSURE),
            leak_rate=row.get(COLUMN_LEAK_RATE),
            flow_limitation=row.get(COLUMN_FLOW_LIMITATION),
        )

    def _flush(self, accumulator: SessionAccumulator) -> None:
        if not len(accumulator.buffer):
            return
        part = self.store.write_part(accumulator.session_id, accumulator.buffer.to_table())
        accumulator.parts.append(part)
        accumulator.buffer.clear()

    def _flush_batch(
        self,
        accumulator: SessionAccumulator,
        report: IngestReport,
        failed_dates: set[date],
    ) -> bool:
        """Flush a full buffer; returns False if the session failed."""
        try:
            self._flush(accumulator)
        except Exception as e:
            self._fail_session(accumulator, report, failed_dates, e)
            return False
        return True

    def _finish_session(
        self,
        accumulator: SessionAccumulator,
        report: IngestReport,
        failed_dates: set[date],
    ) -> None:
        """
        Final flush, aggregate, seal and upsert one session.

        The session is sealed before its aggregate row is written, so a row
        never points at a directory that failed to seal. If the upsert fails
        the sealed directory is dropped with the rest of the session.
        """
        session_id = accumulator.session_id

        try:
            self._flush(accumulator)

            sample_rate = (
                self.settings.fixed_sample_rate or accumulator.rate_estimator.rate_hz()
            )
            parquet_path = (
                str(self.store.session_path(session_id)) if accumulator.parts else None
            )
            record = compute_nightly_aggregate(
                accumulator, sample_rate, parquet_path=parquet_path
            )
            if record is None:
                logger.debug(f"Session {session_id} has no samples, nothing to store")
                return

            self.store.seal(session_id, accumulator.total_count)
            replaced = self.sink.upsert(record)
        except Exception as e:
            self._fail_session(accumulator, report, failed_dates, e)
            return

        if replaced and replaced != session_id:
            self.store.drop_session(replaced)

        report.nights_imported += 1
        if parquet_path:
            report.parquet_files.append(parquet_path)
        logger.info(
            f"Imported {accumulator.date} as {session_id} "
            f"({accumulator.total_count:,} samples at {sample_rate:g} Hz)"
        )

    def _fail_session(
        self,
        accumulator: SessionAccumulator,
        report: IngestReport,
        failed_dates: set[date],
        error: Exception,
    ) -> None:
        failed_dates.add(accumulator.date)
        report.sessions_failed += 1
        report.errors.append(f"Session {accumulator.session_id} failed: {error}")
        logger.error(f"Session {accumulator.session_id} failed: {error}", exc_info=True)
        self._discard_session(accumulator)

    def _discard_session(self, accumulator: SessionAccumulator) -> None:
        accumulator.buffer.clear()
        if self.store.session_path(accumulator.session_id).exists():
            self.store.drop_session(accumulator.session_id)
