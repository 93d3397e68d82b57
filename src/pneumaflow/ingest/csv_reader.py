"""
Line-oriented parsing of CPAP CSV exports.

Rows are parsed one at a time from any iterable of lines, so arbitrarily
long exports never have to be held in memory.
"""

import csv
import logging
import math
import re

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from pneumaflow.constants import (
    COLUMN_EVENT_DURATION,
    COLUMN_EVENT_SEVERITY,
    COLUMN_EVENT_TYPE,
    COLUMN_FLOW_RATE,
    COLUMN_LEAK_RATE,
    COLUMN_MASK_ON,
    COLUMN_PRESSURE,
    COLUMN_TIMESTAMP,
    CSV_DELIMITER,
    NUMERIC_COLUMNS,
)
from pneumaflow.errors import MalformedRowError
from pneumaflow.models.samples import Event, RawSample

logger = logging.getLogger(__name__)

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:[.,](?P<fraction>\d+))?)?)?"
    r"\s*(?P<tz>Z|[+-]\d{2}:?\d{2})?$"
)


def parse_timestamp(text: str) -> int:
    """
    Parse an ISO-8601-like timestamp to milliseconds since the epoch.

    Accepts a date with optional time (``T`` or space separator), optional
    seconds, optional fractional seconds and an optional ``Z`` or
    ``+HH:MM`` offset. Timestamps without an offset are taken as UTC.
    Fractions finer than a millisecond are truncated.

    Args:
        text: Timestamp string

    Returns:
        Milliseconds since 1970-01-01T00:00:00Z

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    match = _TIMESTAMP_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Unrecognized timestamp: {text!r}")

    parts = match.groupdict()
    moment = datetime(
        int(parts["year"]),
        int(parts["month"]),
        int(parts["day"]),
        int(parts["hour"] or 0),
        int(parts["minute"] or 0),
        int(parts["second"] or 0),
        tzinfo=UTC,
    )

    tz = parts["tz"]
    if tz and tz != "Z":
        sign = -1 if tz[0] == "-" else 1
        digits = tz[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        moment -= sign * offset

    fraction_ms = int((parts["fraction"] or "0")[:3].ljust(3, "0"))
    return int(moment.timestamp()) * 1000 + fraction_ms


def split_line(line: str) -> list[str]:
    """
    Split one CSV line into stripped cells, honouring double-quoted fields.

    Raises:
        csv.Error: If the line cannot be tokenized
    """
    cells = next(csv.reader([line], delimiter=CSV_DELIMITER), [])
    return [cell.strip() for cell in cells]


def timestamp_to_date(timestamp_ms: int) -> date:
    """UTC calendar date containing the timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).date()


def _parse_number(text: str) -> float:
    """Parse a numeric cell; unparseable or non-finite values read as 0."""
    try:
        value = float(text)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


@dataclass
class ParsedRow:
    """One successfully parsed data row."""

    line_number: int
    timestamp: int
    date: date
    values: dict[str, float] = field(default_factory=dict)
    event_type: str | None = None

    @property
    def is_event(self) -> bool:
        return bool(self.event_type)

    def get(self, column: str) -> float | None:
        return self.values.get(column)

    def to_sample(self) -> RawSample:
        return RawSample(
            timestamp=self.timestamp,
            flow_rate=self.values.get(COLUMN_FLOW_RATE, 0.0),
            pressure=self.values.get(COLUMN_PRESSURE, 0.0),
            leak_rate=self.values.get(COLUMN_LEAK_RATE, 0.0),
            mask_on=1 if self.values.get(COLUMN_MASK_ON) == 1 else 0,
        )

    def to_event(self) -> Event:
        return Event(
            timestamp=self.timestamp,
            event_type=self.event_type or "",
            duration_seconds=self.values.get(COLUMN_EVENT_DURATION, 0.0),
            severity=self.values.get(COLUMN_EVENT_SEVERITY, 0.0),
        )


def parse_header(line: str) -> list[str]:
    """
    Parse the header row into normalized column names.

    Raises:
        ValueError: If the required timestamp column is missing
    """
    try:
        header = [name.lower() for name in split_line(line.lstrip("\ufeff"))]
    except csv.Error as e:
        raise ValueError(f"Unreadable CSV header: {e}") from e
    if COLUMN_TIMESTAMP not in header:
        raise ValueError(f"CSV header is missing required column '{COLUMN_TIMESTAMP}'")
    return header


def parse_row(header: list[str], line: str, line_number: int = 0) -> ParsedRow:
    """
    Parse one data row against the header.

    Args:
        header: Normalized column names from parse_header()
        line: Raw CSV line
        line_number: 1-based line number for error messages

    Returns:
        ParsedRow

    Raises:
        MalformedRowError: On column-count mismatch or unparseable timestamp
    """
    try:
        cells = split_line(line)
    except csv.Error as e:
        raise MalformedRowError(line_number, str(e)) from e
    if len(cells) != len(header):
        raise MalformedRowError(
            line_number, f"expected {len(header)} columns, got {len(cells)}"
        )

    row = dict(zip(header, cells, strict=True))

    raw_timestamp = row.get(COLUMN_TIMESTAMP, "")
    if not raw_timestamp:
        raise MalformedRowError(line_number, "empty timestamp")
    try:
        timestamp = parse_timestamp(raw_timestamp)
    except ValueError as e:
        raise MalformedRowError(line_number, str(e)) from e

    values = {
        column: _parse_number(row[column])
        for column in NUMERIC_COLUMNS
        if row.get(column)
    }

    return ParsedRow(
        line_number=line_number,
        timestamp=timestamp,
        date=timestamp_to_date(timestamp),
        values=values,
        event_type=row.get(COLUMN_EVENT_TYPE) or None,
    )


class CsvRowReader:
    """
    Stream ParsedRow objects out of CSV lines.

    Malformed rows are skipped and counted rather than raised, so a single
    bad line never aborts the stream.

    Example:
        >>> with open(path, encoding="utf-8-sig", errors="replace") as f:
        ...     reader = CsvRowReader(f)
        ...     for row in reader.rows():
        ...         ...
        >>> reader.malformed_rows
        0
    """

    def __init__(self, lines: Iterable[str]):
        self._lines = lines
        self.header: list[str] | None = None
        self.malformed_rows = 0

    def rows(self) -> Iterator[ParsedRow]:
        """
        Yield parsed data rows in input order.

        Raises:
            ValueError: If the header row is missing the timestamp column
        """
        for line_number, raw_line in enumerate(self._lines, start=1):
            line = raw_line.rstrip("\r\n")
            if not line.strip():
                continue

            if self.header is None:
                self.header = parse_header(line)
                continue

            try:
                yield parse_row(self.header, line, line_number)
            except MalformedRowError as e:
                self.malformed_rows += 1
                logger.debug(f"Skipping malformed row: {e}")
