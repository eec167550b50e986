# raster.py
"""Shared access to the population GeoTIFF.

One ``RasterSource`` is built at startup and handed to every query. It opens
the dataset once (concurrent first callers wait on the same open) and pushes
every windowed read through a single worker thread, since a GDAL dataset handle
must not serve overlapping reads.
"""
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np
import rasterio
import requests
from rasterio.errors import RasterioError
from rasterio.windows import Window

from .config import GEOTIFF_URL, HTTP_TIMEOUT_SEC, POPULATION_TIF
from .errors import DataUnavailable, DecodeFailure
from .models import PixelWindow, RasterHandle

logger = logging.getLogger(__name__)

REMEDY = (
    'Run "bash scripts/download-data.sh" to download a local copy, '
    "or set GEOTIFF_URL to a reachable remote GeoTIFF."
)


def _remote_reachable(url: str, timeout: float = HTTP_TIMEOUT_SEC) -> bool:
    try:
        r = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.warning("GeoTIFF URL check failed: %s", e)
        return False
    if r.status_code != 200:
        logger.warning("GeoTIFF URL returned HTTP %s", r.status_code)
        return False
    return True


def handle_from_dataset(ds) -> RasterHandle:
    """Wrap an opened rasterio dataset; reject grids we cannot index."""
    if getattr(ds, "count", 0) < 1:
        raise DecodeFailure("Population raster has no bands.")
    tf = ds.transform
    if tf.b != 0 or tf.d != 0 or tf.a == 0 or tf.e == 0:
        raise DecodeFailure(f"Population raster has an unsupported geotransform: {tf!r}")
    return RasterHandle(
        origin_x=float(tf.c),
        origin_y=float(tf.f),
        res_x=float(tf.a),
        res_y=float(tf.e),
        width=int(ds.width),
        height=int(ds.height),
        nodata=ds.nodata,
        dataset=ds,
    )


class _PendingOpen:
    """Outcome of the in-flight open, shared with callers that arrive meanwhile."""

    def __init__(self):
        self.done = threading.Event()
        self.handle: Optional[RasterHandle] = None
        self.error: Optional[BaseException] = None

    def wait(self) -> RasterHandle:
        self.done.wait()
        if self.error is not None:
            raise self.error
        return self.handle


class RasterSource:
    def __init__(
        self,
        url: Optional[str] = GEOTIFF_URL,
        path: Optional[str] = POPULATION_TIF,
        opener: Optional[Callable] = None,
        check_remote: bool = True,
    ):
        self.url = url
        self.path = path
        self._opener = opener or rasterio.open
        self._check_remote = check_remote
        self._lock = threading.Lock()
        self._handle: Optional[RasterHandle] = None
        self._pending: Optional[_PendingOpen] = None
        self._reader = ThreadPoolExecutor(max_workers=1, thread_name_prefix="raster-read")

    # region Open once
    def acquire(self) -> RasterHandle:
        handle = self._handle
        if handle is not None:
            return handle

        with self._lock:
            if self._handle is not None:
                return self._handle
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = _PendingOpen()

        if not owner:
            return pending.wait()

        try:
            handle = self._open()
        except BaseException as e:
            with self._lock:
                self._pending = None
            pending.error = e
            pending.done.set()
            raise

        with self._lock:
            self._handle = handle
            self._pending = None
        pending.handle = handle
        pending.done.set()
        return handle

    def _open(self) -> RasterHandle:
        remote_detail = None
        if self.url:
            if not self._check_remote or _remote_reachable(self.url):
                try:
                    handle = handle_from_dataset(self._opener(self.url))
                    logger.info("Opened population raster %s (%dx%d, %.6f deg/px)",
                                self.url, handle.width, handle.height, handle.pixel_size_deg)
                    return handle
                except (RasterioError, DecodeFailure) as e:
                    remote_detail = str(e)
                    logger.warning("Could not open remote GeoTIFF %s: %s", self.url, e)
            else:
                remote_detail = "URL not reachable"
            if self.path and os.path.exists(self.path):
                logger.warning("Falling back to local population raster %s", self.path)

        if not self.path or not os.path.exists(self.path):
            detail = f" (remote: {remote_detail})" if remote_detail else ""
            where = f" at {self.path}" if self.path else ""
            raise DataUnavailable(f"Population data file not found{where}. {REMEDY}{detail}")

        try:
            ds = self._opener(self.path)
        except RasterioError as e:
            raise DecodeFailure(f"Could not decode population raster {self.path}: {e}") from e
        handle = handle_from_dataset(ds)
        logger.info("Opened population raster %s (%dx%d, %.6f deg/px)",
                    self.path, handle.width, handle.height, handle.pixel_size_deg)
        return handle
    # endregion

    # region Serialized reads
    def read_window(self, handle: RasterHandle, window: PixelWindow) -> np.ndarray:
        """Band 1 over the window as float64 (nodata -> NaN), shape (height, width).

        Reads run one at a time in submission order; a failed read only fails
        its own caller.
        """
        if window.is_empty:
            return np.empty((0, 0), dtype=np.float64)
        return self._reader.submit(_read, handle, window).result()

    def close(self) -> None:
        self._reader.shutdown(wait=True)
    # endregion


def _read(handle: RasterHandle, window: PixelWindow) -> np.ndarray:
    win = Window(window.col0, window.row0, window.width, window.height)
    try:
        arr = handle.dataset.read(1, window=win)
    except RasterioError as e:
        raise DecodeFailure(f"Raster read failed for window {window}: {e}") from e
    arr = np.asarray(arr, dtype=np.float64)
    if handle.nodata is not None and np.isfinite(handle.nodata):
        arr = np.where(arr == handle.nodata, np.nan, arr)
    return arr
