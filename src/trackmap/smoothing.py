"""Elevation smoothing and ascent/descent accumulation."""

import numpy as np


def smooth_laplacian(values, radius: int) -> np.ndarray:
    """Replace each interior value by the mean of its window.

    The window covers ``radius`` neighbours on either side and is clipped at
    the ends of the sequence. The first and last values are boundary points
    and stay fixed. A radius <= 0 returns the values unchanged.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if radius <= 0 or n < 3:
        return arr.copy()

    # prefix sums give each window total in O(1)
    csum = np.concatenate(([0.0], np.cumsum(arr)))
    idx = np.arange(n)
    lo = np.maximum(idx - radius, 0)
    hi = np.minimum(idx + radius + 1, n)
    smoothed = (csum[hi] - csum[lo]) / (hi - lo)

    smoothed[0] = arr[0]
    smoothed[-1] = arr[-1]
    return smoothed


def calculate_ascent_descent(elevations, asc_eps: float) -> tuple[float, float]:
    """Sum elevation changes larger than asc_eps.

    The reference height only moves when a change is counted, so noise
    below the threshold never accumulates.
    """
    if len(elevations) == 0:
        return 0.0, 0.0

    ascent = descent = 0.0
    last = float(elevations[0])
    for h in elevations:
        h = float(h)
        d = h - last
        if d > asc_eps:
            ascent += d
            last = h
        elif d < -asc_eps:
            descent += -d
            last = h
    return ascent, descent
