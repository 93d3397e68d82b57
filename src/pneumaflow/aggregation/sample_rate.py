"""Effective sampling rate derived from timestamp spacing."""

from collections import Counter

from pneumaflow.constants import DEFAULT_SAMPLE_RATE_HZ, MILLISECONDS_PER_SECOND


class SampleRateEstimator:
    """
    Track consecutive timestamp deltas and report the dominant rate.

    Uses the most common positive delta, so gaps (mask off, device pauses)
    and duplicated timestamps do not skew the result. Memory is bounded by
    the number of distinct deltas, which is tiny for device data.

    Example:
        >>> estimator = SampleRateEstimator()
        >>> for ts in (0, 40, 80, 120):
        ...     estimator.observe(ts)
        >>> estimator.rate_hz()
        25.0
    """

    def __init__(self, default_rate_hz: float = DEFAULT_SAMPLE_RATE_HZ):
        self.default_rate_hz = default_rate_hz
        self._deltas: Counter[int] = Counter()
        self._last_timestamp: int | None = None

    def observe(self, timestamp_ms: int) -> None:
        if self._last_timestamp is not None:
            delta = timestamp_ms - self._last_timestamp
            if delta > 0:
                self._deltas[delta] += 1
        self._last_timestamp = timestamp_ms

    def rate_hz(self) -> float:
        """
        Effective sampling rate in Hz.

        Returns:
            1000 / modal delta, or the default rate if no positive delta
            has been observed. Ties resolve to the smallest delta.
        """
        if not self._deltas:
            return self.default_rate_hz

        top_count = max(self._deltas.values())
        modal_delta = min(d for d, c in self._deltas.items() if c == top_count)
        return MILLISECONDS_PER_SECOND / modal_delta
