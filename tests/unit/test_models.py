"""
Unit tests for record models and their validation.
"""

from datetime import date

import pytest

from pydantic import ValidationError

from pneumaflow.models import Event, IngestReport, NightlyAggregateRecord, RawSample
from pneumaflow.models.aggregate import DateRange


def _record(**overrides) -> NightlyAggregateRecord:
    values = {
        "date": date(2024, 1, 15),
        "session_id": "2024-01-15-ab12cd34",
        "sample_rate_hz": 25.0,
        "sample_count": 1_500,
        "total_usage_minutes": 1.0,
        "mask_on_minutes": 1.0,
        "quality_score": 100,
    }
    values.update(overrides)
    return NightlyAggregateRecord(**values)


class TestNightlyAggregateRecord:
    def test_valid_record(self):
        assert _record().quality_score == 100

    def test_mask_on_cannot_exceed_usage(self):
        with pytest.raises(ValidationError):
            _record(mask_on_minutes=2.0)

    @pytest.mark.parametrize("score", [-1, 101])
    def test_quality_score_range(self, score):
        with pytest.raises(ValidationError):
            _record(quality_score=score)

    def test_negative_ahi_rejected(self):
        with pytest.raises(ValidationError):
            _record(ahi=-0.1)


class TestRawSample:
    def test_frozen(self):
        sample = RawSample(timestamp=0)
        with pytest.raises(ValidationError):
            sample.pressure = 5.0

    def test_mask_on_is_binary(self):
        with pytest.raises(ValidationError):
            RawSample(timestamp=0, mask_on=2)


class TestEventCategory:
    @pytest.mark.parametrize(
        ("label", "category"),
        [
            ("Obstructive Apnea", "apnea"),
            ("CENTRAL APNEA", "apnea"),
            ("Hypopnea", "hypopnea"),
            ("hypopnea (obstructive)", "hypopnea"),
            ("Flow Limitation", "other"),
        ],
    )
    def test_category(self, label, category):
        assert Event(timestamp=0, event_type=label).category == category


class TestIngestReport:
    def test_dump_uses_camel_case(self):
        report = IngestReport(
            nights_imported=2,
            samples_processed=200,
            date_range=DateRange(start="2024-01-15", end="2024-01-16"),
        )
        dumped = report.model_dump(by_alias=True)

        assert dumped["nightsImported"] == 2
        assert dumped["samplesProcessed"] == 200
        assert dumped["eventsImported"] == 0
        assert dumped["parquetFiles"] == []
        assert dumped["errors"] == []
        assert dumped["dateRange"] == {"start": "2024-01-15", "end": "2024-01-16"}

    def test_empty_report_has_no_date_range(self):
        assert IngestReport().model_dump(by_alias=True)["dateRange"] is None
