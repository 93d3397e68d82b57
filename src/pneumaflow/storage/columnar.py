"""
Columnar (Tier 3) storage for raw high-frequency samples.

Each session owns a directory of immutable Parquet part-files, one per
ingestion flush. Readers union every part of a session through
``pyarrow.dataset`` so timestamp ranges and column subsets are pushed down
into the scan instead of materializing the whole night.

A session is OPEN while it only has part-files and SEALED once a manifest
has been written next to them. Only sealed sessions are queryable.
"""

import json
import logging
import os
import re
import shutil
import threading

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.dataset as ds
import pyarrow.parquet as pq

from pneumaflow.constants import (
    COLUMN_FLOW_RATE,
    COLUMN_LEAK_RATE,
    COLUMN_MASK_ON,
    COLUMN_PRESSURE,
    COLUMN_TIMESTAMP,
    MANIFEST_FILE,
    PARQUET_COMPRESSION,
    PARQUET_ROW_GROUP_SIZE,
    PART_FILE_PREFIX,
    PART_FILE_SUFFIX,
)
from pneumaflow.errors import ColumnarWriteError
from pneumaflow.models.samples import RawSample

logger = logging.getLogger(__name__)

SAMPLE_SCHEMA = pa.schema(
    [
        pa.field(COLUMN_TIMESTAMP, pa.int64()),
        pa.field(COLUMN_FLOW_RATE, pa.float64()),
        pa.field(COLUMN_PRESSURE, pa.float64()),
        pa.field(COLUMN_LEAK_RATE, pa.float64()),
        pa.field(COLUMN_MASK_ON, pa.int8()),
    ]
)

SAMPLE_COLUMNS = tuple(SAMPLE_SCHEMA.names)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class OpenSession:
    """Session with part-files on disk but no manifest yet."""

    session_id: str
    path: Path
    parts: tuple[Path, ...]


@dataclass(frozen=True)
class SealedSession:
    """Session whose part-file set is final and queryable."""

    session_id: str
    path: Path
    parts: tuple[Path, ...]
    row_count: int
    sealed_at: str | None = None


SessionState = OpenSession | SealedSession


@dataclass
class SampleBuffer:
    """Column-oriented in-memory buffer of samples awaiting a flush."""

    timestamps: list[int] = field(default_factory=list)
    flow_rates: list[float] = field(default_factory=list)
    pressures: list[float] = field(default_factory=list)
    leak_rates: list[float] = field(default_factory=list)
    mask_on: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.timestamps)

    def append(self, sample: RawSample) -> None:
        self.timestamps.append(sample.timestamp)
        self.flow_rates.append(sample.flow_rate)
        self.pressures.append(sample.pressure)
        self.leak_rates.append(sample.leak_rate)
        self.mask_on.append(sample.mask_on)

    def to_table(self) -> pa.Table:
        """Convert buffered columns to an Arrow table with the sample schema."""
        return pa.Table.from_arrays(
            [
                pa.array(self.timestamps, type=pa.int64()),
                pa.array(self.flow_rates, type=pa.float64()),
                pa.array(self.pressures, type=pa.float64()),
                pa.array(self.leak_rates, type=pa.float64()),
                pa.array(self.mask_on, type=pa.int8()),
            ],
            schema=SAMPLE_SCHEMA,
        )

    def clear(self) -> None:
        self.timestamps.clear()
        self.flow_rates.clear()
        self.pressures.clear()
        self.leak_rates.clear()
        self.mask_on.clear()


def samples_to_table(samples: Sequence[RawSample]) -> pa.Table:
    """Build an Arrow table from RawSample records."""
    buffer = SampleBuffer()
    for sample in samples:
        buffer.append(sample)
    return buffer.to_table()


def _range_filter(start_ms: int | None, end_ms: int | None) -> ds.Expression | None:
    """Inclusive timestamp filter pushed into Parquet scans."""
    expression = None
    timestamp = ds.field(COLUMN_TIMESTAMP)
    if start_ms is not None:
        expression = timestamp >= start_ms
    if end_ms is not None:
        upper = timestamp <= end_ms
        expression = upper if expression is None else expression & upper
    return expression


def validate_session_id(session_id: str) -> str:
    """
    Validate that a session id is safe to use as a directory name.

    Raises:
        ValueError: If the id is empty or contains path separators
    """
    if not session_id or not _SESSION_ID_PATTERN.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


class ColumnarStore:
    """
    Parquet-backed store with one directory of part-files per session.

    Example:
        >>> store = ColumnarStore(Path("~/.pneumaflow/parquet").expanduser())
        >>> store.write_part("2024-01-15-ab12cd34", buffer.to_table())
        >>> store.seal("2024-01-15-ab12cd34", row_count=len(buffer))
        >>> table = store.scan("2024-01-15-ab12cd34", start_ms=t0, end_ms=t1)
    """

    def __init__(self, root_dir: Path | str, compression: str = PARQUET_COMPRESSION):
        """
        Initialize the store.

        Args:
            root_dir: Directory holding one subdirectory per session
            compression: Parquet codec applied to every column
        """
        self.root_dir = Path(root_dir)
        self.compression = None if compression == "none" else compression
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        os.makedirs(self.root_dir, exist_ok=True)

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def session_path(self, session_id: str) -> Path:
        """Deterministic directory for a session's part-files."""
        return self.root_dir / validate_session_id(session_id)

    def _part_files(self, session_dir: Path) -> list[Path]:
        if not session_dir.is_dir():
            return []
        return sorted(
            p
            for p in session_dir.iterdir()
            if p.name.startswith(PART_FILE_PREFIX) and p.name.endswith(PART_FILE_SUFFIX)
        )

    def write_part(self, session_id: str, table: pa.Table) -> Path:
        """
        Persist one batch as a new immutable part-file.

        Existing parts are never rewritten; the new part gets the next free
        sequence number. The file is written under a temporary name and
        renamed into place once complete.

        Args:
            session_id: Session the batch belongs to
            table: Samples ordered by timestamp, matching SAMPLE_SCHEMA

        Returns:
            Path of the written part-file

        Raises:
            ColumnarWriteError: If the session is sealed or the write fails
        """
        session_dir = self.session_path(session_id)

        with self._session_lock(session_id):
            if (session_dir / MANIFEST_FILE).exists():
                raise ColumnarWriteError(session_id, "session is already sealed")

            try:
                table = table.select(list(SAMPLE_COLUMNS)).cast(SAMPLE_SCHEMA)
            except (KeyError, TypeError, ValueError) as e:
                raise ColumnarWriteError(
                    session_id, f"batch does not match sample schema: {e}"
                ) from e

            part_path = session_dir / (
                f"{PART_FILE_PREFIX}{len(self._part_files(session_dir)):05d}"
                f"{PART_FILE_SUFFIX}"
            )
            temp_path = part_path.with_suffix(".tmp")

            try:
                os.makedirs(session_dir, exist_ok=True)
                pq.write_table(
                    table,
                    temp_path,
                    compression=self.compression,
                    row_group_size=PARQUET_ROW_GROUP_SIZE,
                    write_statistics=True,
                )
                os.replace(temp_path, part_path)
            except OSError as e:
                if temp_path.exists():
                    temp_path.unlink()
                raise ColumnarWriteError(session_id, f"write failed: {e}") from e

        logger.debug(
            f"Wrote {table.num_rows:,} samples to {part_path.name} for {session_id}"
        )
        return part_path

    def write_samples(self, session_id: str, samples: Sequence[RawSample]) -> Path:
        """Persist RawSample records as one part-file."""
        return self.write_part(session_id, samples_to_table(samples))

    def seal(self, session_id: str, row_count: int) -> SealedSession:
        """
        Mark a session's part-file set as final.

        Args:
            session_id: Session to seal
            row_count: Total samples written across all parts

        Returns:
            SealedSession describing the final file set

        Raises:
            ColumnarWriteError: If the session has no parts or the manifest
                cannot be written
        """
        session_dir = self.session_path(session_id)

        with self._session_lock(session_id):
            parts = self._part_files(session_dir)
            if not parts:
                raise ColumnarWriteError(session_id, "cannot seal a session with no data")

            sealed_at = datetime.now(UTC).isoformat()
            manifest = {
                "session_id": session_id,
                "parts": [p.name for p in parts],
                "row_count": row_count,
                "sealed_at": sealed_at,
            }
            manifest_path = session_dir / MANIFEST_FILE
            temp_path = manifest_path.with_suffix(".tmp")
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(manifest, f, indent=2)
                os.replace(temp_path, manifest_path)
            except OSError as e:
                if temp_path.exists():
                    temp_path.unlink()
                raise ColumnarWriteError(session_id, f"seal failed: {e}") from e

        logger.info(f"Sealed session {session_id} ({len(parts)} parts, {row_count:,} rows)")
        return SealedSession(
            session_id=session_id,
            path=session_dir,
            parts=tuple(parts),
            row_count=row_count,
            sealed_at=sealed_at,
        )

    def session_state(self, session_id: str) -> SessionState | None:
        """
        Get the tagged state of a session.

        Returns:
            SealedSession, OpenSession, or None if nothing was written
        """
        session_dir = self.session_path(session_id)
        manifest_path = session_dir / MANIFEST_FILE

        if manifest_path.exists():
            manifest = self._read_manifest(manifest_path)
            parts = tuple(session_dir / name for name in manifest.get("parts", []))
            return SealedSession(
                session_id=session_id,
                path=session_dir,
                parts=parts,
                row_count=int(manifest.get("row_count", 0)),
                sealed_at=manifest.get("sealed_at"),
            )

        parts = self._part_files(session_dir)
        if parts:
            return OpenSession(session_id=session_id, path=session_dir, parts=tuple(parts))
        return None

    @staticmethod
    def _read_manifest(manifest_path: Path) -> dict[str, Any]:
        with open(manifest_path, encoding="utf-8") as f:
            manifest: dict[str, Any] = json.load(f)
        return manifest

    def scan(
        self,
        session_id: str,
        columns: Sequence[str] | None = None,
        start_ms: int | None = None,
        end_ms: int | None = None,
        parts: Sequence[Path] | None = None,
    ) -> pa.Table:
        """
        Read a session's samples with range and column pushdown.

        All part-files are unioned into one logical dataset. The timestamp
        bounds are inclusive and evaluated inside the Parquet scan, so row
        groups outside the range are skipped via their statistics.

        Args:
            session_id: Session to read
            columns: Columns to return (default: all sample columns)
            start_ms: Inclusive lower timestamp bound
            end_ms: Inclusive upper timestamp bound
            parts: Explicit part-file list (default: every part on disk)

        Returns:
            Arrow table ordered ascending by timestamp
        """
        if parts is None:
            parts = self._part_files(self.session_path(session_id))

        requested = list(columns) if columns else list(SAMPLE_COLUMNS)
        scan_columns = list(dict.fromkeys([COLUMN_TIMESTAMP, *requested]))

        if not parts:
            return SAMPLE_SCHEMA.empty_table().select(requested)

        dataset = self._dataset(parts)
        table = dataset.to_table(
            columns=scan_columns, filter=_range_filter(start_ms, end_ms)
        )
        table = table.sort_by(COLUMN_TIMESTAMP)

        return table.select(requested)

    def count_rows(
        self,
        session_id: str,
        start_ms: int | None = None,
        end_ms: int | None = None,
        parts: Sequence[Path] | None = None,
    ) -> int:
        """Count samples in an inclusive timestamp range without loading them."""
        if parts is None:
            parts = self._part_files(self.session_path(session_id))
        if not parts:
            return 0
        return int(
            self._dataset(parts).count_rows(filter=_range_filter(start_ms, end_ms))
        )

    @staticmethod
    def _dataset(parts: Sequence[Path]) -> ds.Dataset:
        return ds.dataset([str(p) for p in parts], schema=SAMPLE_SCHEMA, format="parquet")

    def list_sessions(self) -> list[SessionState]:
        """List every session directory that holds data."""
        states: list[SessionState] = []
        if not self.root_dir.is_dir():
            return states

        for entry in sorted(self.root_dir.iterdir()):
            if not entry.is_dir() or not _SESSION_ID_PATTERN.match(entry.name):
                continue
            state = self.session_state(entry.name)
            if state is not None:
                states.append(state)
        return states

    def drop_session(self, session_id: str) -> bool:
        """
        Delete all files for a session.

        Returns:
            True if anything was removed
        """
        session_dir = self.session_path(session_id)
        with self._session_lock(session_id):
            if not session_dir.exists():
                return False
            shutil.rmtree(session_dir)

        logger.info(f"Dropped columnar data for session {session_id}")
        return True
