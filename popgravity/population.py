# population.py
# region Imports
import logging
import time
from typing import List, Tuple
import numpy as np
from .bands import adaptive_boundaries, bands_from_boundaries
from .config import MIN_DISTANCE_KM
from .geometry import bounding_box, haversine_km, pixel_area_km2
from .grid import pixel_centers, window_for_bbox
from .gravity import accumulate_arrays
from .models import AggregationResult, CellSample, SpatialQuery
from .raster import RasterSource
# endregion

logger = logging.getLogger(__name__)


# region Spatial Query
def compute_population(
    source: RasterSource,
    query: SpatialQuery,
    min_clamp: float = MIN_DISTANCE_KM,
) -> AggregationResult:
    """Distance-banded gravity sum of the raster around a point."""
    t0 = time.perf_counter()
    handle = source.acquire()
    window = window_for_bbox(handle, bounding_box(query.lat, query.lng, query.radius_km))
    if window.is_empty:
        logger.debug("Query %s falls outside the raster", query)
        return AggregationResult(elapsed_ms=(time.perf_counter() - t0) * 1000.0)

    data = source.read_window(handle, window)
    lats, lngs = pixel_centers(handle, window)
    dist = haversine_km(query.lat, query.lng, lats, lngs)
    areas = pixel_area_km2(lats, handle.pixel_size_deg)

    bands = bands_from_boundaries(adaptive_boundaries(query.radius_km))
    result = accumulate_arrays(
        dist, data, bands,
        limit=query.radius_km,
        exponent=query.exponent,
        min_clamp=min_clamp,
        areas=areas,
    )
    result.elapsed_ms = (time.perf_counter() - t0) * 1000.0
    logger.debug("Window %dx%d -> %d cells in %.1f ms",
                 window.width, window.height, result.cells_included, result.elapsed_ms)
    return result
# endregion


# region Cell Extraction
def extract_populated_cells(
    source: RasterSource,
    lat: float,
    lng: float,
    radius_km: float,
) -> Tuple[List[CellSample], float]:
    """Every populated pixel in the query window, rounded for transport.

    Returns (cells, pixel_size_deg). Cells carry their distance to (lat, lng)
    as `value`; no radius filter is applied, matching the window's square shape.
    """
    handle = source.acquire()
    window = window_for_bbox(handle, bounding_box(lat, lng, radius_km))
    if window.is_empty:
        return [], handle.pixel_size_deg

    data = source.read_window(handle, window)
    lats, lngs = pixel_centers(handle, window)
    keep = np.isfinite(data) & (data > 0)
    dist = haversine_km(lat, lng, lats[keep], lngs[keep])
    cells = [
        CellSample(lat=round(float(a), 4), lng=round(float(b), 4), pop=float(round(p)), value=float(d))
        for a, b, p, d in zip(lats[keep], lngs[keep], data[keep], dist)
    ]
    return cells, handle.pixel_size_deg
# endregion
