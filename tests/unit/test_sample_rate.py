"""
Unit tests for sampling-rate estimation.
"""

import pytest

from pneumaflow.aggregation.sample_rate import SampleRateEstimator


def _observe(estimator: SampleRateEstimator, timestamps) -> SampleRateEstimator:
    for ts in timestamps:
        estimator.observe(ts)
    return estimator


class TestSampleRateEstimator:
    def test_25hz(self):
        estimator = _observe(SampleRateEstimator(), range(0, 4000, 40))
        assert estimator.rate_hz() == 25.0

    def test_1hz(self):
        estimator = _observe(SampleRateEstimator(), range(0, 60_000, 1000))
        assert estimator.rate_hz() == 1.0

    def test_gaps_do_not_skew_rate(self):
        timestamps = list(range(0, 400, 40)) + list(range(60_000, 60_400, 40))
        estimator = _observe(SampleRateEstimator(), timestamps)
        assert estimator.rate_hz() == 25.0

    def test_duplicate_timestamps_ignored(self):
        estimator = _observe(SampleRateEstimator(), [0, 0, 40, 40, 80, 120])
        assert estimator.rate_hz() == 25.0

    def test_tie_prefers_smaller_delta(self):
        estimator = _observe(SampleRateEstimator(), [0, 20, 60])
        assert estimator.rate_hz() == 50.0

    @pytest.mark.parametrize("timestamps", [[], [1_000]])
    def test_falls_back_to_default(self, timestamps):
        estimator = _observe(SampleRateEstimator(default_rate_hz=10.0), timestamps)
        assert estimator.rate_hz() == 10.0
