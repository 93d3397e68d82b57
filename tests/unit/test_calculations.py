"""
Unit tests for nightly aggregate statistics.

Covers order statistics, usage minutes, AHI and the quality score.
"""

import pytest

from pneumaflow.aggregation.calculations import (
    calculate_ahi,
    calculate_large_leak_percent,
    calculate_quality_score,
    median,
    percentile,
    samples_to_minutes,
)


class TestOrderStatistics:
    """Median and nearest-rank percentile."""

    def test_median_even_length_averages_middle_pair(self):
        assert median([1, 2, 3, 4]) == 2.5

    def test_median_odd_length(self):
        assert median([3, 1, 2]) == 2.0

    def test_median_empty_is_zero(self):
        assert median([]) == 0.0

    def test_p95_nearest_rank(self):
        """ceil(4 * 0.95) - 1 = 3, the largest value."""
        assert percentile([1, 2, 3, 4], 0.95) == 4.0

    def test_percentile_unsorted_input(self):
        values = [7, 1, 10, 3, 9, 2, 8, 4, 6, 5]
        assert percentile(values, 0.95) == 10.0
        assert percentile(values, 0.5) == 5.0

    def test_percentile_single_value(self):
        assert percentile([7.5], 0.95) == 7.5

    def test_percentile_empty_is_zero(self):
        assert percentile([], 0.95) == 0.0


class TestUsageAndAhi:
    """Minute conversion and events per hour."""

    def test_usage_minutes_at_25hz(self):
        assert samples_to_minutes(1500, 25.0) == pytest.approx(1.0)

    def test_usage_minutes_zero_rate(self):
        assert samples_to_minutes(1500, 0.0) == 0.0

    def test_ahi_events_per_hour(self):
        assert calculate_ahi(10, 2.0) == 5.0

    def test_ahi_without_usage_is_zero(self):
        assert calculate_ahi(0, 0.0) == 0.0
        assert calculate_ahi(12, 0.0) == 0.0

    def test_ahi_never_nan(self):
        assert calculate_ahi(5, float("nan")) == 0.0
        assert calculate_ahi(5, float("inf")) == 0.0

    def test_large_leak_percent(self):
        assert calculate_large_leak_percent(30.0, 100.0) == pytest.approx(30.0)
        assert calculate_large_leak_percent(5.0, 0.0) == 0.0


class TestQualityScore:
    """0-100 nightly quality score."""

    def test_perfect_night(self):
        assert calculate_quality_score(0.0, 0.0, 480.0, 480.0) == 100

    def test_score_decreases_with_ahi(self):
        scores = [
            calculate_quality_score(ahi, 0.0, 480.0, 480.0)
            for ahi in (0.0, 5.0, 10.0, 20.0, 40.0)
        ]
        assert scores == sorted(scores, reverse=True)
        assert scores[2] == 90
        # 30 capped mild deduction plus 5 severe
        assert scores[3] == 65

    def test_thirty_percent_large_leak(self):
        assert calculate_quality_score(0.0, 30.0, 480.0, 480.0) == 80

    def test_leak_below_threshold_has_no_effect(self):
        assert calculate_quality_score(0.0, 10.0, 480.0, 480.0) == 100

    def test_zero_mask_on_time(self):
        assert calculate_quality_score(0.0, 0.0, 0.0, 480.0) == 70

    def test_score_clamped_at_zero(self):
        assert calculate_quality_score(100.0, 100.0, 0.0, 480.0) == 0

    def test_score_is_integer(self):
        score = calculate_quality_score(7.3, 12.7, 400.0, 480.0)
        assert isinstance(score, int)
        assert 0 <= score <= 100
