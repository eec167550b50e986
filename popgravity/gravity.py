# gravity.py
"""Generalised inverse-distance ("gravity") accumulation.

Each live sample with domain value d (km or seconds) and population p gets

    w = 1 / max(d, min_clamp) ** exponent

and adds p to population, p*w to the weighted contribution and w to the weight
mass, both for its band and for the totals. The spatial and travel-time paths
share this one implementation; they differ only in how samples are turned into
(value, population) pairs and in the clamp they pass.
"""
# region Imports
import time
from typing import Callable, Iterable, Optional, Sequence, Tuple
import numpy as np
from .bands import assign_bands
from .models import AggregationResult, Band, BandResult
# endregion


# region Core
def live_mask(values, pops, limit: float) -> np.ndarray:
    # NaN value = unreachable, negative value = malformed;
    # non-positive or NaN population = not a populated cell
    values = np.asarray(values, dtype=np.float64)
    pops = np.asarray(pops, dtype=np.float64)
    return in_range(values, limit) & np.isfinite(pops) & (pops > 0)


def in_range(values, limit: float) -> np.ndarray:
    values = np.asarray(values, dtype=np.float64)
    return np.isfinite(values) & (values >= 0) & (values <= limit)


def accumulate_arrays(
    values,
    pops,
    bands: Sequence[Band],
    *,
    limit: float,
    exponent: float,
    min_clamp: float,
    areas=None,
) -> AggregationResult:
    t0 = time.perf_counter()
    values = np.asarray(values, dtype=np.float64).ravel()
    pops = np.asarray(pops, dtype=np.float64).ravel()
    if values.shape != pops.shape:
        raise ValueError(f"values and pops differ in shape: {values.shape} vs {pops.shape}")
    if areas is not None:
        areas = np.asarray(areas, dtype=np.float64)
        # scalar = same area for every cell; arrays are matched cell by cell
        areas = np.full(values.shape, float(areas)) if areas.ndim == 0 else areas.ravel()
        if areas.shape != values.shape:
            raise ValueError(f"areas and values differ in size: {areas.size} vs {values.size}")

    live = live_mask(values, pops, limit)

    d = values[live]
    p = pops[live]
    r = np.maximum(d, min_clamp)
    w = 1.0 / np.power(r, exponent)
    contrib = p * w

    n = len(bands)
    idx = assign_bands(bands, d, limit)
    owned = idx >= 0
    bi = idx[owned]
    band_pop = np.bincount(bi, weights=p[owned], minlength=n)
    band_contrib = np.bincount(bi, weights=contrib[owned], minlength=n)
    band_mass = np.bincount(bi, weights=w[owned], minlength=n)
    band_count = np.bincount(bi, minlength=n)
    band_area = None
    if areas is not None:
        # surface counts every valid in-range cell, populated or not
        valid = in_range(values, limit) & np.isfinite(pops) & (pops >= 0)
        ai = assign_bands(bands, values[valid], limit)
        band_area = np.bincount(ai[ai >= 0], weights=areas[valid][ai >= 0], minlength=n)

    results = [
        BandResult(
            lower=b.lower,
            upper=b.shown_upper,
            population=float(band_pop[k]),
            weighted_contribution=float(band_contrib[k]),
            weight_mass=float(band_mass[k]),
            cell_count=int(band_count[k]),
            area_km2=None if band_area is None else float(band_area[k]),
        )
        for k, b in enumerate(bands)
    ]

    return AggregationResult(
        total_population=float(p.sum()),
        raw_sum=float(contrib.sum()),
        weight_mass=float(w.sum()),
        bands=results,
        cells_examined=int(values.size),
        cells_included=int(p.size),
        elapsed_ms=(time.perf_counter() - t0) * 1000.0,
    )
# endregion


# region Sample Adapter
def accumulate(
    samples: Iterable,
    bands: Sequence[Band],
    *,
    limit: float,
    exponent: float,
    min_clamp: float,
    extract: Callable[[object], Tuple[Optional[float], float]],
    area: Optional[Callable[[object], float]] = None,
) -> AggregationResult:
    """Accumulate arbitrary sample objects; `extract(s)` gives (value or None, pop)."""
    samples = list(samples)
    values = np.empty(len(samples), dtype=np.float64)
    pops = np.empty(len(samples), dtype=np.float64)
    for k, s in enumerate(samples):
        v, p = extract(s)
        values[k] = np.nan if v is None else v
        pops[k] = np.nan if p is None else p
    areas = None
    if area is not None:
        areas = np.fromiter((area(s) for s in samples), dtype=np.float64, count=len(samples))
    return accumulate_arrays(
        values, pops, bands,
        limit=limit, exponent=exponent, min_clamp=min_clamp, areas=areas,
    )
# endregion
