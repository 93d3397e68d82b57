"""
Unit tests for LTTB downsampling.
"""

import numpy as np
import pytest

from pneumaflow.query.downsample import downsample, lttb_indices


def _series(n: int) -> tuple[np.ndarray, np.ndarray]:
    x = np.arange(n, dtype=np.int64) * 40
    y = 30 * np.sin(2 * np.pi * np.arange(n) / 100)
    return x, y


class TestLttbIndices:
    """Index selection invariants."""

    def test_output_length_equals_target(self):
        x, y = _series(10_000)
        indices = lttb_indices(x, y, 500)
        assert len(indices) == 500

    def test_keeps_first_and_last(self):
        x, y = _series(10_000)
        indices = lttb_indices(x, y, 500)
        assert indices[0] == 0
        assert indices[-1] == 9_999

    def test_indices_strictly_increasing(self):
        x, y = _series(5_000)
        indices = lttb_indices(x, y, 321)
        assert np.all(np.diff(indices) > 0)

    def test_short_series_returned_unchanged(self):
        x, y = _series(50)
        np.testing.assert_array_equal(lttb_indices(x, y, 100), np.arange(50))
        np.testing.assert_array_equal(lttb_indices(x, y, 50), np.arange(50))

    def test_minimum_target(self):
        x, y = _series(10)
        assert list(lttb_indices(x, y, 2)) == [0, 9]
        indices = lttb_indices(x, y, 3)
        assert len(indices) == 3
        assert indices[0] == 0 and indices[-1] == 9

    def test_deterministic(self):
        x, y = _series(7_777)
        first = lttb_indices(x, y, 400)
        second = lttb_indices(x, y, 400)
        np.testing.assert_array_equal(first, second)

    def test_spike_is_retained(self):
        n = 10_000
        x = np.arange(n, dtype=np.float64)
        y = np.zeros(n)
        y[5_000] = 100.0

        indices = lttb_indices(x, y, 100)
        assert 5_000 in indices

    def test_target_below_two_rejected(self):
        x, y = _series(10)
        with pytest.raises(ValueError):
            lttb_indices(x, y, 1)

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            lttb_indices(np.arange(10), np.arange(9), 5)


class TestDownsample:
    """(x, y) convenience wrapper."""

    def test_returns_selected_points(self):
        x, y = _series(1_000)
        dx, dy = downsample(x, y, 100)
        indices = lttb_indices(x, y, 100)
        np.testing.assert_array_equal(dx, x[indices])
        np.testing.assert_array_equal(dy, y[indices])

    def test_idempotent(self):
        x, y = _series(3_000)
        dx, dy = downsample(x, y, 200)
        ddx, ddy = downsample(dx, dy, 200)
        np.testing.assert_array_equal(dx, ddx)
        np.testing.assert_array_equal(dy, ddy)
