# region Imports
from bisect import bisect_right
from typing import List, Sequence, Tuple
import numpy as np
from .models import Band
# endregion

# region Adaptive Partition (distance)
def adaptive_boundaries(limit: float) -> List[float]:
    """0 = b0 < b1 < ... < bn = limit with steps 1 below 10, 2 below 25, 5 after."""
    if not limit > 0:
        raise ValueError(f"limit must be positive, got {limit!r}")
    boundaries = [0.0]
    current = 0.0
    while current < limit:
        if current < 10:
            step = 1
        elif current < 25:
            step = 2
        else:
            step = 5
        current = min(current + step, limit)
        boundaries.append(current)

    if boundaries[-1] != limit:
        boundaries.append(limit)
    return boundaries


def bands_from_boundaries(boundaries: Sequence[float]) -> List[Band]:
    return [Band(lo, hi) for lo, hi in zip(boundaries[:-1], boundaries[1:])]
# endregion

# region Fixed Table (time)
def fixed_bands(table: Sequence[Tuple[float, float]], limit: float) -> List[Band]:
    """Bands from an ordered (lower, upper) table up to `limit`.

    The band holding `limit` keeps its full upper bound for accumulation and
    only carries the clipped edge as display_upper. A limit past the table's
    end gets one extra band [last_upper, limit].
    """
    bands: List[Band] = []
    for lo, hi in table:
        if lo >= limit:
            break
        bands.append(Band(float(lo), float(hi), float(limit) if hi > limit else None))
    if not bands or bands[-1].upper < limit:
        start = bands[-1].upper if bands else 0.0
        bands.append(Band(float(start), float(limit)))
    return bands
# endregion

# region Band Lookup
def find_band(bands: Sequence[Band], value: float, limit: float) -> int:
    """Index of the band owning `value`, or -1. Only the last band is closed at `limit`."""
    if not bands or value > limit or value != value:
        return -1
    i = bisect_right([b.lower for b in bands], value) - 1
    if i < 0:
        return -1
    if value < bands[i].upper:
        return i
    if i == len(bands) - 1:
        return i
    return -1


def assign_bands(bands: Sequence[Band], values: np.ndarray, limit: float) -> np.ndarray:
    """Vectorised find_band; -1 where no band owns the value."""
    values = np.asarray(values, dtype=np.float64)
    if not bands:
        return np.full(values.shape, -1, dtype=np.int64)
    lowers = np.array([b.lower for b in bands], dtype=np.float64)
    uppers = np.array([b.upper for b in bands], dtype=np.float64)
    last = len(bands) - 1

    idx = np.searchsorted(lowers, values, side="right") - 1
    safe = np.clip(idx, 0, last)
    in_range = (idx >= 0) & (values <= limit)
    owned = in_range & ((values < uppers[safe]) | (safe == last))
    return np.where(owned, safe, -1)
# endregion
