"""In-memory state for the one session being ingested."""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pneumaflow.aggregation.sample_rate import SampleRateEstimator
from pneumaflow.models.samples import Event, RawSample
from pneumaflow.storage.columnar import SampleBuffer


@dataclass
class SessionAccumulator:
    """
    Running state for one calendar-date session.

    Samples are buffered until flushed to the columnar store; the stat
    lists grow for the whole session so order statistics can be computed
    at the end.
    """

    session_id: str
    date: date
    buffer: SampleBuffer = field(default_factory=SampleBuffer)
    events: list[Event] = field(default_factory=list)
    pressures: list[float] = field(default_factory=list)
    leaks: list[float] = field(default_factory=list)
    flow_limitations: list[float] = field(default_factory=list)
    mask_on_count: int = 0
    total_count: int = 0
    first_timestamp: int | None = None
    last_timestamp: int | None = None
    parts: list[Path] = field(default_factory=list)
    rate_estimator: SampleRateEstimator = field(default_factory=SampleRateEstimator)

    def add_sample(
        self,
        sample: RawSample,
        pressure: float | None = None,
        leak_rate: float | None = None,
        flow_limitation: float | None = None,
    ) -> None:
        """
        Buffer a sample and update running statistics.

        The optional channel values are the ones actually present in the
        input row; absent channels are buffered as 0 but kept out of the
        order statistics.
        """
        self.buffer.append(sample)

        if pressure is not None:
            self.pressures.append(pressure)
        if leak_rate is not None:
            self.leaks.append(leak_rate)
        if flow_limitation is not None:
            self.flow_limitations.append(flow_limitation)
        if sample.mask_on == 1:
            self.mask_on_count += 1
        self.total_count += 1

        if self.first_timestamp is None or sample.timestamp < self.first_timestamp:
            self.first_timestamp = sample.timestamp
        if self.last_timestamp is None or sample.timestamp > self.last_timestamp:
            self.last_timestamp = sample.timestamp
        self.rate_estimator.observe(sample.timestamp)

    def add_event(self, event: Event) -> None:
        self.events.append(event)
