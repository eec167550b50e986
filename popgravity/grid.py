# region Imports
import math
from typing import Tuple
import numpy as np
from .models import PixelWindow, RasterHandle
# endregion

# region Window Extraction
def window_for_bbox(handle: RasterHandle, bbox: Tuple[float, float, float, float]) -> PixelWindow:
    """Pixel rectangle fully containing bbox=(min_lng, min_lat, max_lng, max_lat),
    clamped to the raster. Boxes that miss the raster give an empty window."""
    min_lng, min_lat, max_lng, max_lat = bbox
    r_min_lng, r_min_lat, r_max_lng, r_max_lat = handle.bounds
    if max_lng < r_min_lng or min_lng > r_max_lng or max_lat < r_min_lat or min_lat > r_max_lat:
        return PixelWindow.empty()

    ox, oy = handle.origin_x, handle.origin_y
    rx, ry = handle.res_x, handle.res_y
    col0 = max(0, math.floor((min_lng - ox) / rx))
    col1 = min(handle.width - 1, math.ceil((max_lng - ox) / rx))
    # ry < 0: the northern edge maps to the smaller row
    row0 = max(0, math.floor((max_lat - oy) / ry))
    row1 = min(handle.height - 1, math.ceil((min_lat - oy) / ry))

    if col0 > col1 or row0 > row1:
        return PixelWindow.empty()
    return PixelWindow(int(col0), int(row0), int(col1), int(row1))
# endregion

# region Pixel Centres
def pixel_centers(handle: RasterHandle, window: PixelWindow):
    """(lats, lngs) of pixel centres, each shaped (window.height, window.width)."""
    rows = np.arange(window.row0, window.row0 + window.height, dtype=np.float64)
    cols = np.arange(window.col0, window.col0 + window.width, dtype=np.float64)
    lats = handle.origin_y + (rows + 0.5) * handle.res_y
    lngs = handle.origin_x + (cols + 0.5) * handle.res_x
    return np.repeat(lats[:, None], window.width, axis=1), np.tile(lngs, (window.height, 1))
# endregion
