"""
PneumaFlow: tiered storage and query engine for CPAP sensor data

Streams CSV exports into nightly aggregates (SQLite) and raw columnar
sessions (Parquet), and serves bucketed and downsampled views of them.
"""

from pneumaflow.config import Settings, load_settings
from pneumaflow.database import AggregateRepository, Database
from pneumaflow.ingest import StreamingIngestor
from pneumaflow.query import TieredQueryEngine
from pneumaflow.storage import ColumnarStore

__all__ = [
    "AggregateRepository",
    "ColumnarStore",
    "Database",
    "Settings",
    "StreamingIngestor",
    "TieredQueryEngine",
    "load_settings",
]
