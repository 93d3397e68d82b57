"""Result types for the meso and micro query tiers."""

from pydantic import BaseModel, ConfigDict, Field

from pneumaflow.models.samples import RawSample


class MesoBucket(BaseModel):
    """Aggregates over one fixed-width time bucket."""

    bucket_start: int = Field(description="Bucket start (ms), multiple of width")
    flow_min: float
    flow_max: float
    flow_avg: float
    pressure_avg: float
    leak_max: float
    mask_on_pct: float = Field(ge=0, le=100)


class MicroSampling(BaseModel):
    """How the returned micro series relates to the raw range."""

    model_config = ConfigDict(populate_by_name=True)

    original_points: int = Field(alias="originalPoints")
    returned_points: int = Field(alias="returnedPoints")
    downsampled: bool


class MicroResult(BaseModel):
    """Raw or LTTB-reduced samples for a time range, ascending by timestamp."""

    sampling: MicroSampling
    data: list[RawSample]


class SessionSummary(BaseModel):
    """Whole-session statistics computed from the columnar tier."""

    session_id: str
    total_samples: int
    start_time: int | None = Field(description="First timestamp (ms)")
    end_time: int | None = Field(description="Last timestamp (ms)")
    duration_minutes: float
    avg_pressure: float | None
    avg_leak: float | None
    max_leak: float | None
