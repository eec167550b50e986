import json
import threading
import time

import numpy as np
import pytest
from rasterio.transform import from_origin

from popgravity.raster import RasterSource

RES = 1.0 / 120.0


class FakeDataset:
    """Stands in for an opened rasterio dataset: band 1 only, windowed reads."""

    def __init__(self, data, west, north, res, nodata=None, count=1, delay=0.0):
        self.data = np.asarray(data, dtype=np.float32)
        self.height, self.width = self.data.shape
        self.transform = from_origin(west, north, res, res)
        self.nodata = nodata
        self.count = count
        self.delay = delay
        self.reads = 0
        self._busy = False
        self._guard = threading.Lock()
        self.violations = 0

    def read(self, band, window=None):
        with self._guard:
            if self._busy:
                self.violations += 1
                raise RuntimeError("overlapping read")
            self._busy = True
        try:
            if self.delay:
                time.sleep(self.delay)
            self.reads += 1
            r0, c0 = int(window.row_off), int(window.col_off)
            h, w = int(window.height), int(window.width)
            return self.data[r0:r0 + h, c0:c0 + w].copy()
        finally:
            with self._guard:
                self._busy = False


@pytest.fixture
def tif_path(tmp_path):
    p = tmp_path / "pop.tif"
    p.write_bytes(b"")
    return str(p)


@pytest.fixture
def make_source(tif_path):
    def _make(dataset):
        return RasterSource(url=None, path=tif_path, opener=lambda _path: dataset)
    return _make


@pytest.fixture
def equator_grid():
    """241x241 pixels of 1/120 deg centred near (0, 0); two populated cells."""
    data = np.zeros((241, 241), dtype=np.float32)
    data[120, 120] = 1000.0
    data[120, 123] = 500.0
    data[0, 0] = -200.0
    return FakeDataset(data, west=-1.0, north=1.0, res=RES, nodata=-200.0)


@pytest.fixture
def pixel_center():
    """(lat, lng) of a pixel centre in a FakeDataset."""
    def _center(ds, row, col):
        tf = ds.transform
        return tf.f + (row + 0.5) * tf.e, tf.c + (col + 0.5) * tf.a
    return _center


@pytest.fixture
def fake_dataset():
    return FakeDataset


@pytest.fixture
def origin_payload():
    return {
        "origin": {"id": "test-origin", "name": "Test", "lat": 0.0, "lng": 0.0},
        "computedAt": "2025-01-01T00:00:00Z",
        "maxTravelTimeSec": 10800,
        "searchRadiusKm": 200,
        "cells": [
            {"lat": 0.01, "lng": 0.01, "pop": 100, "driving": 600, "transit": None},
            {"lat": 0.02, "lng": 0.0, "pop": 50, "driving": None, "transit": 300},
            {"lat": 0.1, "lng": 0.1, "pop": 20, "driving": 1200, "transit": 900},
            {"lat": 1.0, "lng": 0.0, "pop": 10, "driving": 4000, "transit": None},
            {"lat": 0.03, "lng": 0.03, "pop": 5, "driving": None, "transit": None},
        ],
    }


@pytest.fixture
def results_dir(tmp_path, origin_payload):
    d = tmp_path / "travel-time"
    d.mkdir()
    (d / "test-origin.json").write_text(json.dumps(origin_payload))
    return str(d)
