"""Conversion of a sealed session accumulator into a nightly aggregate."""

import logging

from datetime import UTC, datetime

from pneumaflow.aggregation.accumulator import SessionAccumulator
from pneumaflow.aggregation.calculations import (
    calculate_ahi,
    calculate_large_leak_percent,
    calculate_quality_score,
    median,
    minutes_to_hours,
    percentile,
    samples_to_minutes,
)
from pneumaflow.constants import (
    EVENT_CATEGORY_APNEA,
    EVENT_CATEGORY_HYPOPNEA,
    LEAK_LARGE_THRESHOLD,
    PERCENTILE_95,
)
from pneumaflow.models.aggregate import NightlyAggregateRecord

logger = logging.getLogger(__name__)


def _timestamp_to_datetime(timestamp_ms: int | None) -> datetime | None:
    if timestamp_ms is None:
        return None
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def compute_nightly_aggregate(
    accumulator: SessionAccumulator,
    sample_rate_hz: float,
    parquet_path: str | None = None,
) -> NightlyAggregateRecord | None:
    """
    Compute the nightly summary for one session.

    Args:
        accumulator: Session state after its last sample
        sample_rate_hz: Rate used to convert sample counts to minutes
        parquet_path: Columnar reference to store on the record

    Returns:
        NightlyAggregateRecord, or None when the session has no samples
    """
    if accumulator.total_count == 0:
        logger.debug(f"Session {accumulator.session_id} has no samples, skipping")
        return None

    total_minutes = samples_to_minutes(accumulator.total_count, sample_rate_hz)
    mask_on_minutes = samples_to_minutes(accumulator.mask_on_count, sample_rate_hz)

    pressures = accumulator.pressures
    leaks = accumulator.leaks
    flow_limitations = accumulator.flow_limitations

    large_leak_count = sum(1 for leak in leaks if leak > LEAK_LARGE_THRESHOLD)
    large_leak_minutes = samples_to_minutes(large_leak_count, sample_rate_hz)
    large_leak_percent = calculate_large_leak_percent(large_leak_minutes, total_minutes)

    categories = [event.category for event in accumulator.events]
    apnea_count = categories.count(EVENT_CATEGORY_APNEA)
    hypopnea_count = categories.count(EVENT_CATEGORY_HYPOPNEA)
    total_events = len(categories)

    ahi = calculate_ahi(total_events, minutes_to_hours(mask_on_minutes))

    quality_score = calculate_quality_score(
        ahi=ahi,
        large_leak_percent=large_leak_percent,
        mask_on_minutes=mask_on_minutes,
        total_usage_minutes=total_minutes,
    )

    return NightlyAggregateRecord(
        date=accumulator.date,
        session_id=accumulator.session_id,
        session_start=_timestamp_to_datetime(accumulator.first_timestamp),
        session_end=_timestamp_to_datetime(accumulator.last_timestamp),
        sample_rate_hz=sample_rate_hz,
        sample_count=accumulator.total_count,
        total_usage_minutes=total_minutes,
        mask_on_minutes=mask_on_minutes,
        median_pressure=median(pressures),
        min_pressure=min(pressures, default=0.0),
        max_pressure=max(pressures, default=0.0),
        pressure_95th_percentile=percentile(pressures, PERCENTILE_95),
        median_leak_rate=median(leaks),
        min_leak_rate=min(leaks, default=0.0),
        max_leak_rate=max(leaks, default=0.0),
        leak_95th_percentile=percentile(leaks, PERCENTILE_95),
        large_leak_minutes=large_leak_minutes,
        large_leak_percent=large_leak_percent,
        ahi=ahi,
        apnea_count=apnea_count,
        hypopnea_count=hypopnea_count,
        total_events=total_events,
        median_flow_limitation=median(flow_limitations),
        min_flow_limitation=min(flow_limitations, default=0.0),
        max_flow_limitation=max(flow_limitations, default=0.0),
        flow_limitation_95th_percentile=percentile(flow_limitations, PERCENTILE_95),
        quality_score=quality_score,
        parquet_path=parquet_path,
    )
