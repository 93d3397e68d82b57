"""
Largest-Triangle-Three-Buckets (LTTB) downsampling.

Reduces an ordered series to a bounded number of points while keeping its
visual shape: peaks, troughs and slope changes survive, flat stretches are
thinned. The first and last points are always kept.
"""

import math

import numpy as np


def lttb_indices(x: np.ndarray, y: np.ndarray, target: int) -> np.ndarray:
    """
    Select indices of the points LTTB keeps.

    The interior points (all but first and last) are split into
    ``target - 2`` equal-width buckets. Walking left to right, each bucket
    contributes the point forming the largest triangle with the previously
    selected point and the average of the following bucket. For the last
    bucket the following "bucket" is the final point alone.

    Args:
        x: Monotonic x values (timestamps)
        y: Values to preserve the shape of
        target: Number of points to keep

    Returns:
        Strictly increasing int64 indices of length ``min(target, len(x))``.
        If ``len(x) <= target`` every index is returned.

    Raises:
        ValueError: If target < 2 or x and y differ in length
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = len(x)

    if len(y) != n:
        raise ValueError(f"x and y must have equal length ({n} != {len(y)})")
    if target < 2:
        raise ValueError(f"LTTB target must be at least 2, got {target}")

    if n <= target:
        return np.arange(n, dtype=np.int64)

    selected = np.empty(target, dtype=np.int64)
    selected[0] = 0
    selected[-1] = n - 1

    bucket_width = (n - 2) / (target - 2) if target > 2 else 0.0
    previous = 0

    for i in range(target - 2):
        start = int(math.floor(i * bucket_width)) + 1
        end = int(math.floor((i + 1) * bucket_width)) + 1
        if i == target - 3:
            end = n - 1

        next_start = end
        next_end = min(int(math.floor((i + 2) * bucket_width)) + 1, n - 1)
        if i == target - 3 or next_start >= next_end:
            avg_x = x[n - 1]
            avg_y = y[n - 1]
        else:
            avg_x = x[next_start:next_end].mean()
            avg_y = y[next_start:next_end].mean()

        ax = x[previous]
        ay = y[previous]
        bx = x[start:end]
        by = y[start:end]

        # Twice the triangle area; the constant factor does not change argmax
        areas = np.abs((ax - avg_x) * (by - ay) - (ax - bx) * (avg_y - ay))
        previous = start + int(np.argmax(areas))
        selected[i + 1] = previous

    return selected


def downsample(
    x: np.ndarray, y: np.ndarray, target: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Downsample a series with LTTB.

    Args:
        x: Monotonic x values
        y: Series values
        target: Number of points to keep

    Returns:
        Tuple of (x, y) arrays of length ``min(target, len(x))``
    """
    x = np.asarray(x)
    y = np.asarray(y)
    indices = lttb_indices(x, y, target)
    return x[indices], y[indices]
