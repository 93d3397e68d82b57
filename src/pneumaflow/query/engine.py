"""
Read side of the tiered store.

- Meso: fixed-width time buckets aggregated inside the Arrow engine
- Micro: raw samples for a time range, LTTB-reduced when over budget
- Summary: whole-session statistics

Only sealed sessions are served. Parameters are validated before any file
is opened.
"""

import logging

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from pneumaflow.config import Settings
from pneumaflow.constants import (
    COLUMN_FLOW_RATE,
    COLUMN_LEAK_RATE,
    COLUMN_MASK_ON,
    COLUMN_PRESSURE,
    COLUMN_TIMESTAMP,
    MESO_DEFAULT_BUCKET_SECONDS,
    MESO_MAX_BUCKET_SECONDS,
    MESO_MIN_BUCKET_SECONDS,
    MICRO_DEFAULT_POINTS,
    MICRO_MAX_POINTS,
    MICRO_MIN_POINTS,
    MILLISECONDS_PER_SECOND,
    SECONDS_PER_MINUTE,
)
from pneumaflow.errors import (
    InvalidParameterError,
    QueryError,
    QueryInternalError,
    SessionNotFoundError,
    SessionNotSealedError,
)
from pneumaflow.models.query import (
    MesoBucket,
    MicroResult,
    MicroSampling,
    SessionSummary,
)
from pneumaflow.models.samples import RawSample
from pneumaflow.query.downsample import lttb_indices
from pneumaflow.storage.columnar import (
    ColumnarStore,
    OpenSession,
    validate_session_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUCKET_COLUMN = "bucket_start"


def _is_int(value: Any) -> bool:
    return isinstance(value, int | np.integer) and not isinstance(value, bool)


def _scalar(value: pa.Scalar) -> Any:
    return value.as_py() if value is not None else None


class TieredQueryEngine:
    """
    Meso, micro and summary queries over sealed columnar sessions.

    Example:
        >>> engine = TieredQueryEngine(store)
        >>> buckets = engine.meso("2024-01-15-ab12cd34", bucket_seconds=60)
        >>> detail = engine.micro("2024-01-15-ab12cd34", t0, t0 + 60_000, 500)
    """

    def __init__(self, store: ColumnarStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()

    def _sealed_parts(self, session_id: str) -> tuple[Path, ...]:
        """
        Resolve a session to its final part-file set.

        Raises:
            InvalidParameterError: Malformed session id
            SessionNotFoundError: Nothing stored under the id
            SessionNotSealedError: Ingestion has not finished the session
        """
        try:
            validate_session_id(session_id)
        except ValueError as e:
            raise InvalidParameterError(str(e)) from e

        state = self.store.session_state(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        if isinstance(state, OpenSession):
            raise SessionNotSealedError(session_id)
        return state.parts

    def _run(self, session_id: str, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except QueryError:
            raise
        except (pa.ArrowException, OSError, ValueError) as e:
            logger.error(f"Query failed for session {session_id}: {e}", exc_info=True)
            raise QueryInternalError(f"Query failed for session {session_id}: {e}") from e

    def meso(
        self, session_id: str, bucket_seconds: int = MESO_DEFAULT_BUCKET_SECONDS
    ) -> list[MesoBucket]:
        """
        Aggregate a session into fixed-width time buckets.

        Bucket starts are ``floor(timestamp / width) * width`` so every
        boundary is an exact multiple of the width. Empty buckets are not
        returned.

        Args:
            session_id: Sealed session to read
            bucket_seconds: Bucket width, integer in [1, 300]

        Returns:
            Buckets ascending by start

        Raises:
            InvalidParameterError: Bucket width out of range or not an integer
            SessionNotFoundError: Unknown session
            SessionNotSealedError: Session still being ingested
            QueryInternalError: Unexpected scan failure
        """
        if not _is_int(bucket_seconds) or not (
            MESO_MIN_BUCKET_SECONDS <= bucket_seconds <= MESO_MAX_BUCKET_SECONDS
        ):
            raise InvalidParameterError(
                f"bucket_seconds must be an integer between {MESO_MIN_BUCKET_SECONDS} "
                f"and {MESO_MAX_BUCKET_SECONDS}, got {bucket_seconds!r}"
            )

        parts = self._sealed_parts(session_id)
        bucket_ms = int(bucket_seconds) * MILLISECONDS_PER_SECOND

        def run() -> list[MesoBucket]:
            table = self.store.scan(session_id, parts=parts)
            timestamps = table.column(COLUMN_TIMESTAMP).to_numpy()
            starts = (timestamps // bucket_ms) * bucket_ms
            table = table.append_column(BUCKET_COLUMN, pa.array(starts, type=pa.int64()))

            grouped = (
                table.group_by(BUCKET_COLUMN)
                .aggregate(
                    [
                        (COLUMN_FLOW_RATE, "min"),
                        (COLUMN_FLOW_RATE, "max"),
                        (COLUMN_FLOW_RATE, "mean"),
                        (COLUMN_PRESSURE, "mean"),
                        (COLUMN_LEAK_RATE, "max"),
                        (COLUMN_MASK_ON, "mean"),
                    ]
                )
                .sort_by(BUCKET_COLUMN)
            )

            return [
                MesoBucket(
                    bucket_start=row[BUCKET_COLUMN],
                    flow_min=row[f"{COLUMN_FLOW_RATE}_min"],
                    flow_max=row[f"{COLUMN_FLOW_RATE}_max"],
                    flow_avg=row[f"{COLUMN_FLOW_RATE}_mean"],
                    pressure_avg=row[f"{COLUMN_PRESSURE}_mean"],
                    leak_max=row[f"{COLUMN_LEAK_RATE}_max"],
                    mask_on_pct=min(100.0, row[f"{COLUMN_MASK_ON}_mean"] * 100),
                )
                for row in grouped.to_pylist()
            ]

        buckets = self._run(session_id, run)
        logger.debug(
            f"Meso query {session_id}: {len(buckets)} buckets of {bucket_seconds}s"
        )
        return buckets

    def micro(
        self,
        session_id: str,
        start_ms: int,
        end_ms: int,
        target_points: int = MICRO_DEFAULT_POINTS,
    ) -> MicroResult:
        """
        Return raw samples in an inclusive time range.

        When the range holds more samples than the effective target
        (``target_points`` capped at the configured maximum and at 10,000),
        rows are chosen by LTTB over the flow channel. Whole rows are taken,
        so every channel stays aligned with its timestamp.

        Args:
            session_id: Sealed session to read
            start_ms: Inclusive range start (ms)
            end_ms: Inclusive range end (ms), greater than start_ms
            target_points: Requested point budget, at least 3

        Returns:
            MicroResult ascending by timestamp

        Raises:
            InvalidParameterError: Bad range or budget, or range exceeds the
                configured scan row budget
            SessionNotFoundError: Unknown session
            SessionNotSealedError: Session still being ingested
            QueryInternalError: Unexpected scan failure
        """
        if not _is_int(start_ms) or not _is_int(end_ms):
            raise InvalidParameterError("start and end must be integer milliseconds")
        if end_ms <= start_ms:
            raise InvalidParameterError(
                f"end ({end_ms}) must be greater than start ({start_ms})"
            )
        if not _is_int(target_points) or target_points < MICRO_MIN_POINTS:
            raise InvalidParameterError(
                f"target_points must be an integer of at least {MICRO_MIN_POINTS}, "
                f"got {target_points!r}"
            )

        target = min(int(target_points), self.settings.max_points, MICRO_MAX_POINTS)
        parts = self._sealed_parts(session_id)
        max_scan_rows = self.settings.max_scan_rows

        def run() -> MicroResult:
            if max_scan_rows is not None:
                in_range = self.store.count_rows(
                    session_id, start_ms=start_ms, end_ms=end_ms, parts=parts
                )
                if in_range > max_scan_rows:
                    raise InvalidParameterError(
                        f"Range holds {in_range:,} samples, over the scan budget "
                        f"of {max_scan_rows:,}; narrow the time range"
                    )

            table = self.store.scan(
                session_id, start_ms=start_ms, end_ms=end_ms, parts=parts
            )
            original = table.num_rows

            if original > target:
                indices = lttb_indices(
                    table.column(COLUMN_TIMESTAMP).to_numpy(),
                    table.column(COLUMN_FLOW_RATE).to_numpy(),
                    target,
                )
                table = table.take(pa.array(indices, type=pa.int64()))

            return MicroResult(
                sampling=MicroSampling(
                    original_points=original,
                    returned_points=table.num_rows,
                    downsampled=table.num_rows < original,
                ),
                data=[RawSample(**row) for row in table.to_pylist()],
            )

        result = self._run(session_id, run)
        logger.debug(
            f"Micro query {session_id}: {result.sampling.original_points} -> "
            f"{result.sampling.returned_points} points"
        )
        return result

    def summary(self, session_id: str) -> SessionSummary:
        """
        Whole-session statistics from the columnar tier.

        Raises:
            SessionNotFoundError: Unknown session
            SessionNotSealedError: Session still being ingested
            QueryInternalError: Unexpected scan failure
        """
        parts = self._sealed_parts(session_id)

        def run() -> SessionSummary:
            table = self.store.scan(
                session_id,
                columns=[COLUMN_TIMESTAMP, COLUMN_PRESSURE, COLUMN_LEAK_RATE],
                parts=parts,
            )
            timestamps = table.column(COLUMN_TIMESTAMP)
            start = _scalar(pc.min(timestamps))
            end = _scalar(pc.max(timestamps))
            duration = (
                (end - start) / (MILLISECONDS_PER_SECOND * SECONDS_PER_MINUTE)
                if start is not None and end is not None
                else 0.0
            )

            return SessionSummary(
                session_id=session_id,
                total_samples=table.num_rows,
                start_time=start,
                end_time=end,
                duration_minutes=duration,
                avg_pressure=_scalar(pc.mean(table.column(COLUMN_PRESSURE))),
                avg_leak=_scalar(pc.mean(table.column(COLUMN_LEAK_RATE))),
                max_leak=_scalar(pc.max(table.column(COLUMN_LEAK_RATE))),
            )

        return self._run(session_id, run)
