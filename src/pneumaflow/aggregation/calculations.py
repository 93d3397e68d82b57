"""Statistical calculations for nightly therapy aggregates."""

import math

from collections.abc import Sequence

import numpy as np

from pneumaflow.constants import MINUTES_PER_HOUR, SECONDS_PER_MINUTE
from pneumaflow.constants import QualityScoreConstants as QSC


def median(values: Sequence[float] | np.ndarray) -> float:
    """
    Median of a set of values.

    Even-length inputs average the two middle values.

    Args:
        values: Values in any order

    Returns:
        Median, or 0.0 for empty input
    """
    if len(values) == 0:
        return 0.0

    ordered = np.sort(np.asarray(values, dtype=np.float64))
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return float((ordered[mid - 1] + ordered[mid]) / 2)
    return float(ordered[mid])


def percentile(values: Sequence[float] | np.ndarray, p: float) -> float:
    """
    Nearest-rank percentile.

    index = ceil(N * p) - 1, clamped to [0, N - 1] on a sorted copy.

    Args:
        values: Values in any order
        p: Percentile as a fraction (0.95 for the 95th)

    Returns:
        Percentile value, or 0.0 for empty input
    """
    if len(values) == 0:
        return 0.0

    ordered = np.sort(np.asarray(values, dtype=np.float64))
    index = math.ceil(len(ordered) * p) - 1
    index = min(max(index, 0), len(ordered) - 1)
    return float(ordered[index])


def samples_to_minutes(sample_count: int, sample_rate_hz: float) -> float:
    """Convert a sample count to minutes at the given rate."""
    if sample_rate_hz <= 0:
        return 0.0
    return sample_count / sample_rate_hz / SECONDS_PER_MINUTE


def calculate_ahi(total_events: int, usage_hours: float) -> float:
    """
    Calculate Apnea-Hypopnea Index (AHI).

    AHI = events / hours of mask-on use

    Args:
        total_events: Count of scored events
        usage_hours: Mask-on hours

    Returns:
        AHI value (events per hour), 0.0 when there is no usage
    """
    if usage_hours <= 0 or not math.isfinite(usage_hours):
        return 0.0

    return total_events / usage_hours


def calculate_large_leak_percent(
    large_leak_minutes: float, total_usage_minutes: float
) -> float:
    """Share of usage time spent in large leak, 0.0 without usage."""
    if total_usage_minutes <= 0:
        return 0.0
    return large_leak_minutes / total_usage_minutes * 100


def calculate_quality_score(
    ahi: float,
    large_leak_percent: float,
    mask_on_minutes: float,
    total_usage_minutes: float,
) -> int:
    """
    Derive a 0-100 nightly quality score.

    Starts at 100 and subtracts capped, linear deductions for AHI above 5,
    a further deduction for AHI above 15, large leak above 10% of usage and
    mask-on time below 80% of usage.

    Args:
        ahi: Apnea-Hypopnea Index
        large_leak_percent: Percent of usage time in large leak
        mask_on_minutes: Minutes with the mask on
        total_usage_minutes: Recorded minutes

    Returns:
        Integer score clamped to [0, 100]
    """
    score = float(QSC.MAX_SCORE)

    if ahi > QSC.AHI_MILD_THRESHOLD:
        score -= min(
            QSC.AHI_MILD_MAX_DEDUCTION,
            (ahi - QSC.AHI_MILD_THRESHOLD) * QSC.AHI_MILD_RATE,
        )
    if ahi > QSC.AHI_SEVERE_THRESHOLD:
        score -= min(
            QSC.AHI_SEVERE_MAX_DEDUCTION,
            (ahi - QSC.AHI_SEVERE_THRESHOLD) * QSC.AHI_SEVERE_RATE,
        )

    if large_leak_percent > QSC.LARGE_LEAK_PERCENT_THRESHOLD:
        score -= min(
            QSC.LARGE_LEAK_MAX_DEDUCTION,
            (large_leak_percent - QSC.LARGE_LEAK_PERCENT_THRESHOLD)
            * QSC.LARGE_LEAK_RATE,
        )

    usage_percent = (
        mask_on_minutes / total_usage_minutes * 100 if total_usage_minutes > 0 else 0.0
    )
    if usage_percent < QSC.MASK_ON_PERCENT_TARGET:
        score -= min(
            QSC.MASK_ON_MAX_DEDUCTION,
            (QSC.MASK_ON_PERCENT_TARGET - usage_percent) * QSC.MASK_ON_RATE,
        )

    clamped = max(float(QSC.MIN_SCORE), min(float(QSC.MAX_SCORE), score))
    return int(round(clamped))


def minutes_to_hours(minutes: float) -> float:
    return minutes / MINUTES_PER_HOUR
