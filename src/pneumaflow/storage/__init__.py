"""Columnar storage tier for PneumaFlow."""

from pneumaflow.storage.columnar import (
    SAMPLE_COLUMNS,
    SAMPLE_SCHEMA,
    ColumnarStore,
    OpenSession,
    SampleBuffer,
    SealedSession,
    SessionState,
)

__all__ = [
    "SAMPLE_COLUMNS",
    "SAMPLE_SCHEMA",
    "ColumnarStore",
    "OpenSession",
    "SampleBuffer",
    "SealedSession",
    "SessionState",
]
