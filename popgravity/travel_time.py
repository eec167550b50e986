# travel_time.py
"""Gravity sums over precomputed travel times from a fixed origin."""
# region Imports
import json
import logging
import os
import re
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .bands import fixed_bands
from .config import (
    FETCH_CHUNK_BYTES,
    HTTP_TIMEOUT_SEC,
    MIN_TIME_SEC,
    NEAR_RADIUS_KM,
    TIME_BANDS_MIN,
    TRAVEL_TIME_DIR,
    TRAVEL_TIME_URL,
)
from .errors import DataUnavailable, DecodeFailure, InvalidRequest, Superseded
from .geometry import haversine_km
from .gravity import accumulate
from .models import (
    MODES,
    Coverage,
    OriginResult,
    ReachableCell,
    TimeQuery,
    TravelTimeCell,
    TravelTimeResult,
)
# endregion

logger = logging.getLogger(__name__)

_ORIGIN_ID = re.compile(r"^[a-z0-9-]+$")


# region Mode Resolution
def effective_time(cell: TravelTimeCell, mode: str) -> Optional[float]:
    """Seconds for the mode; `fastest` takes the smaller of the known times."""
    if mode == "driving":
        return cell.driving
    if mode == "transit":
        return cell.transit
    if mode == "fastest":
        if cell.driving is not None and cell.transit is not None:
            return min(cell.driving, cell.transit)
        return cell.driving if cell.driving is not None else cell.transit
    raise InvalidRequest(f"mode must be one of {MODES}, got {mode!r}")
# endregion


# region Coverage
def coverage(result: OriginResult, near_km: float = NEAR_RADIUS_KM) -> Coverage:
    """Share of cells with a value per mode, overall and within `near_km` of the origin.

    Ignores the mode and time filters: it answers whether the origin has usable
    data at all.
    """
    cells = result.cells
    total = len(cells)
    if total == 0:
        return Coverage()
    o = result.origin
    drv = sum(1 for c in cells if c.driving is not None)
    trn = sum(1 for c in cells if c.transit is not None)
    dist = haversine_km(o.lat, o.lng, [c.lat for c in cells], [c.lng for c in cells])
    near = [c for c, d in zip(cells, dist) if d < near_km]
    near_drv = sum(1 for c in near if c.driving is not None)
    near_trn = sum(1 for c in near if c.transit is not None)
    n = len(near)
    return Coverage(
        driving=drv / total,
        transit=trn / total,
        driving_near=near_drv / n if n else 0.0,
        transit_near=near_trn / n if n else 0.0,
        total_cells=total,
        near_cells=n,
    )
# endregion


# region Cell Filter
def time_bands(max_time_min: float, table: Sequence[Tuple[float, float]] = TIME_BANDS_MIN):
    """Fixed minute table converted to second bands up to the limit."""
    return fixed_bands([(lo * 60.0, hi * 60.0) for lo, hi in table], max_time_min * 60.0)


def filter_travel_time(
    result: OriginResult,
    mode: str,
    exponent: float,
    max_time_min: int,
    min_clamp: float = MIN_TIME_SEC,
    table: Sequence[Tuple[float, float]] = TIME_BANDS_MIN,
) -> TravelTimeResult:
    if mode not in MODES:
        raise InvalidRequest(f"mode must be one of {MODES}, got {mode!r}")
    limit = max_time_min * 60.0

    agg = accumulate(
        result.cells,
        time_bands(max_time_min, table),
        limit=limit,
        exponent=exponent,
        min_clamp=min_clamp,
        extract=lambda c: (effective_time(c, mode), c.pop),
    )

    reachable: List[ReachableCell] = []
    for c in result.cells:
        t = effective_time(c, mode)
        if t is None or not 0 <= t <= limit or not c.pop > 0:
            continue
        w = 1.0 / max(t, min_clamp) ** exponent
        reachable.append(ReachableCell(c.lat, c.lng, c.pop, t, c.pop * w))

    return TravelTimeResult(
        mode=mode,
        max_time_min=max_time_min,
        aggregation=agg,
        cells=reachable,
        coverage=coverage(result),
    )


def summarize(result: OriginResult, query: TimeQuery) -> TravelTimeResult:
    return filter_travel_time(result, query.mode, query.exponent, query.max_time_min)
# endregion


# region Result Store
def check_origin_id(origin_id: str) -> str:
    if not isinstance(origin_id, str) or not _ORIGIN_ID.match(origin_id):
        raise InvalidRequest(f"Invalid originId: {origin_id!r}")
    return origin_id


class TravelTimeStore:
    """Precomputed `<origin>.json` results: local directory first, then remote base URL."""

    def __init__(
        self,
        directory: Optional[str] = TRAVEL_TIME_DIR,
        base_url: Optional[str] = TRAVEL_TIME_URL,
        http: Optional[requests.Session] = None,
    ):
        self.directory = directory
        self.base_url = base_url.rstrip("/") if base_url else None
        self.http = http or requests.Session()

    def load_raw(self, origin_id: str, cancel: Optional[threading.Event] = None) -> Dict[str, Any]:
        safe = check_origin_id(origin_id)

        if self.directory:
            path = os.path.join(self.directory, f"{safe}.json")
            if os.path.exists(path):
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        data = json.load(f)
                except ValueError as e:
                    raise DecodeFailure(f"Travel-time results for {safe} are not valid JSON: {e}") from e
                logger.info("Loaded travel-time results for %s from %s", safe, path)
                return data

        if self.base_url:
            url = f"{self.base_url}/{safe}.json"
            try:
                data = self._fetch(url, cancel)
            except (requests.RequestException, ValueError) as e:
                logger.warning("Remote travel-time fetch failed for %s: %s", url, e)
            else:
                logger.info("Loaded travel-time results for %s from %s", safe, url)
                return data

        raise DataUnavailable(
            f"No results found for origin: {safe}. "
            f"Precompute it into {self.directory or 'TRAVEL_TIME_DIR'} or set TRAVEL_TIME_URL."
        )

    def load(self, origin_id: str, cancel: Optional[threading.Event] = None) -> OriginResult:
        data = self.load_raw(origin_id, cancel)
        try:
            return OriginResult.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeFailure(f"Malformed travel-time results for {origin_id}: {e}") from e

    def _fetch(self, url: str, cancel: Optional[threading.Event]) -> Dict[str, Any]:
        if cancel is not None and cancel.is_set():
            raise Superseded(url)
        buf = bytearray()
        with self.http.get(url, stream=True, timeout=HTTP_TIMEOUT_SEC) as r:
            r.raise_for_status()
            for chunk in r.iter_content(chunk_size=FETCH_CHUNK_BYTES):
                if cancel is not None and cancel.is_set():
                    raise Superseded(url)
                buf.extend(chunk)
        return json.loads(bytes(buf))
# endregion
