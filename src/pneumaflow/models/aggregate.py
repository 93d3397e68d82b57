"""Nightly aggregate and ingestion report models."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NightlyAggregateRecord(BaseModel):
    """
    One nightly summary row, keyed by calendar date.

    Produced once per ingestion session and upserted as a whole.
    """

    date: dt.date = Field(description="Calendar date (unique key)")
    session_id: str = Field(description="Ingestion session identifier")
    session_start: dt.datetime | None = Field(
        default=None, description="First sample time (UTC)"
    )
    session_end: dt.datetime | None = Field(
        default=None, description="Last sample time (UTC)"
    )
    sample_rate_hz: float = Field(gt=0, description="Rate used for minute math")
    sample_count: int = Field(ge=0, description="Samples in the session")

    total_usage_minutes: float = Field(ge=0, description="Recorded minutes")
    mask_on_minutes: float = Field(ge=0, description="Minutes with mask on")

    median_pressure: float = Field(default=0.0, description="Median pressure")
    min_pressure: float = Field(default=0.0, description="Minimum pressure")
    max_pressure: float = Field(default=0.0, description="Maximum pressure")
    pressure_95th_percentile: float = Field(
        default=0.0, description="95th percentile pressure"
    )

    median_leak_rate: float = Field(default=0.0, description="Median leak")
    min_leak_rate: float = Field(default=0.0, description="Minimum leak")
    max_leak_rate: float = Field(default=0.0, description="Maximum leak")
    leak_95th_percentile: float = Field(default=0.0, description="95th pct leak")
    large_leak_minutes: float = Field(default=0.0, ge=0, description="Large leak time")
    large_leak_percent: float = Field(
        default=0.0, ge=0, description="Large leak share of usage (%)"
    )

    ahi: float = Field(default=0.0, ge=0, description="Apnea-Hypopnea Index")
    apnea_count: int = Field(default=0, ge=0, description="Apnea events")
    hypopnea_count: int = Field(default=0, ge=0, description="Hypopnea events")
    total_events: int = Field(default=0, ge=0, description="All events")

    median_flow_limitation: float = Field(default=0.0, description="Median FL")
    min_flow_limitation: float = Field(default=0.0, description="Minimum FL")
    max_flow_limitation: float = Field(default=0.0, description="Maximum FL")
    flow_limitation_95th_percentile: float = Field(
        default=0.0, description="95th percentile FL"
    )

    quality_score: int = Field(ge=0, le=100, description="Derived quality score")
    parquet_path: str | None = Field(
        default=None, description="Columnar session reference, if any"
    )

    @model_validator(mode="after")
    def _check_usage(self) -> "NightlyAggregateRecord":
        # Small tolerance for float minute arithmetic
        if self.mask_on_minutes > self.total_usage_minutes + 1e-9:
            raise ValueError(
                f"mask_on_minutes ({self.mask_on_minutes}) exceeds "
                f"total_usage_minutes ({self.total_usage_minutes})"
            )
        return self


class DateRange(BaseModel):
    """Inclusive range of calendar dates (YYYY-MM-DD)."""

    start: str
    end: str


class IngestReport(BaseModel):
    """Best-effort outcome of one ingestion pass."""

    model_config = ConfigDict(populate_by_name=True)

    nights_imported: int = Field(default=0, alias="nightsImported")
    samples_processed: int = Field(default=0, alias="samplesProcessed")
    events_imported: int = Field(default=0, alias="eventsImported")
    parquet_files: list[str] = Field(default_factory=list, alias="parquetFiles")
    errors: list[str] = Field(default_factory=list)
    date_range: DateRange | None = Field(default=None, alias="dateRange")
    malformed_rows: int = Field(default=0, alias="malformedRows")
    sessions_failed: int = Field(default=0, alias="sessionsFailed")


class DataBounds(BaseModel):
    """Extent of the nightly aggregate table."""

    min_date: dt.date
    max_date: dt.date
    total_nights: int
