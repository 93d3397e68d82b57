"""Raw sample and event records produced by ingestion."""

from pydantic import BaseModel, ConfigDict, Field

from pneumaflow.constants import (
    EVENT_CATEGORY_APNEA,
    EVENT_CATEGORY_HYPOPNEA,
    EVENT_CATEGORY_OTHER,
)


class RawSample(BaseModel):
    """One high-frequency device sample. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(description="Sample time (ms since epoch)")
    flow_rate: float = Field(default=0.0, description="Flow rate (L/min)")
    pressure: float = Field(default=0.0, description="Mask pressure (cmH2O)")
    leak_rate: float = Field(default=0.0, description="Leak rate (L/min)")
    mask_on: int = Field(default=0, ge=0, le=1, description="Mask on flag (0/1)")


class Event(BaseModel):
    """A device-flagged respiratory event."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(description="Event time (ms since epoch)")
    event_type: str = Field(min_length=1, description="Device event label")
    duration_seconds: float = Field(default=0.0, description="Event duration")
    severity: float = Field(default=0.0, description="Device severity score")

    @property
    def category(self) -> str:
        """
        Classify the event label as apnea, hypopnea or other.

        Hypopnea is checked first because its label also contains "apnea".
        """
        label = self.event_type.lower()
        if EVENT_CATEGORY_HYPOPNEA in label:
            return EVENT_CATEGORY_HYPOPNEA
        if EVENT_CATEGORY_APNEA in label:
            return EVENT_CATEGORY_APNEA
        return EVENT_CATEGORY_OTHER
