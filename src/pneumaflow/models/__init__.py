"""Typed records shared by ingestion, storage and queries."""

from pneumaflow.models.aggregate import (
    DataBounds,
    DateRange,
    IngestReport,
    NightlyAggregateRecord,
)
from pneumaflow.models.query import (
    MesoBucket,
    MicroResult,
    MicroSampling,
    SessionSummary,
)
from pneumaflow.models.samples import Event, RawSample

__all__ = [
    "DataBounds",
    "DateRange",
    "Event",
    "IngestReport",
    "MesoBucket",
    "MicroResult",
    "MicroSampling",
    "NightlyAggregateRecord",
    "RawSample",
    "SessionSummary",
]
