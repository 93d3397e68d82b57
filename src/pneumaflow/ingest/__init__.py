"""CSV ingestion for PneumaFlow."""

from pneumaflow.ingest.csv_reader import (
    CsvRowReader,
    ParsedRow,
    parse_header,
    parse_row,
    parse_timestamp,
)
from pneumaflow.ingest.streaming import AggregateSink, StreamingIngestor

__all__ = [
    "AggregateSink",
    "CsvRowReader",
    "ParsedRow",
    "StreamingIngestor",
    "parse_header",
    "parse_row",
    "parse_timestamp",
]
