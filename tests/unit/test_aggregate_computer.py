"""
Unit tests for nightly aggregate computation from a session accumulator.
"""

from datetime import UTC, date, datetime

import pytest

from pneumaflow.aggregation.accumulator import SessionAccumulator
from pneumaflow.aggregation.computer import compute_nightly_aggregate
from pneumaflow.models.samples import Event, RawSample
from tests.helpers.synthetic_data import BASE_TIMESTAMP_MS

NIGHT = date(2024, 1, 15)


def _accumulator(
    num_samples: int = 1_500,
    leak_for=lambda i: 8.0,
    mask_on_for=lambda i: 1,
    events=(),
) -> SessionAccumulator:
    accumulator = SessionAccumulator(session_id="2024-01-15-ab12cd34", date=NIGHT)
    for i in range(num_samples):
        sample = RawSample(
            timestamp=BASE_TIMESTAMP_MS + i * 40,
            pressure=10.0 + (i % 3),
            leak_rate=leak_for(i),
            mask_on=mask_on_for(i),
        )
        accumulator.add_sample(
            sample,
            pressure=sample.pressure,
            leak_rate=sample.leak_rate,
            flow_limitation=0.1,
        )
    for label in events:
        accumulator.add_event(Event(timestamp=BASE_TIMESTAMP_MS, event_type=label))
    return accumulator


class TestComputeNightlyAggregate:
    def test_empty_session_yields_nothing(self):
        accumulator = SessionAccumulator(session_id="2024-01-15-ab12cd34", date=NIGHT)
        assert compute_nightly_aggregate(accumulator, 25.0) is None

    def test_usage_and_identity(self):
        record = compute_nightly_aggregate(
            _accumulator(), 25.0, parquet_path="/data/2024-01-15-ab12cd34"
        )

        assert record is not None
        assert record.date == NIGHT
        assert record.session_id == "2024-01-15-ab12cd34"
        assert record.sample_count == 1_500
        assert record.total_usage_minutes == pytest.approx(1.0)
        assert record.mask_on_minutes == pytest.approx(1.0)
        assert record.parquet_path == "/data/2024-01-15-ab12cd34"
        assert record.session_start == datetime.fromtimestamp(
            BASE_TIMESTAMP_MS / 1000, tz=UTC
        )

    def test_pressure_statistics(self):
        record = compute_nightly_aggregate(_accumulator(), 25.0)

        assert record.min_pressure == 10.0
        assert record.max_pressure == 12.0
        assert record.median_pressure == 11.0
        assert record.pressure_95th_percentile == 12.0
        assert record.median_flow_limitation == pytest.approx(0.1)

    def test_large_leak(self):
        record = compute_nightly_aggregate(
            _accumulator(leak_for=lambda i: 30.0 if i % 2 else 10.0), 25.0
        )

        assert record.large_leak_percent == pytest.approx(50.0)
        assert record.large_leak_minutes == pytest.approx(0.5)
        assert record.max_leak_rate == 30.0

    def test_leak_at_threshold_is_not_large(self):
        record = compute_nightly_aggregate(_accumulator(leak_for=lambda i: 24.0), 25.0)
        assert record.large_leak_percent == 0.0

    def test_event_categories_and_ahi(self):
        record = compute_nightly_aggregate(
            _accumulator(
                num_samples=25 * 3600,
                events=("Obstructive Apnea", "Central Apnea", "Hypopnea", "Arousal"),
            ),
            25.0,
        )

        assert record.apnea_count == 2
        assert record.hypopnea_count == 1
        assert record.total_events == 4
        assert record.ahi == pytest.approx(4.0)

    def test_mask_off_lowers_score(self):
        full = compute_nightly_aggregate(_accumulator(), 25.0)
        half = compute_nightly_aggregate(
            _accumulator(mask_on_for=lambda i: i % 2), 25.0
        )

        assert half.mask_on_minutes == pytest.approx(0.5)
        assert half.total_usage_minutes >= half.mask_on_minutes
        assert half.quality_score < full.quality_score

    def test_sample_rate_drives_minutes(self):
        record = compute_nightly_aggregate(_accumulator(num_samples=600), 1.0)
        assert record.sample_rate_hz == 1.0
        assert record.total_usage_minutes == pytest.approx(10.0)

    def test_missing_channels_excluded_from_statistics(self):
        accumulator = SessionAccumulator(session_id="2024-01-15-ab12cd34", date=NIGHT)
        for i in range(10):
            accumulator.add_sample(RawSample(timestamp=BASE_TIMESTAMP_MS + i * 40))

        record = compute_nightly_aggregate(accumulator, 25.0)

        assert record.sample_count == 10
        assert record.median_pressure == 0.0
        assert record.max_leak_rate == 0.0
        assert record.mask_on_minutes == 0.0
