# models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

MODES = ("driving", "transit", "fastest")


# region Raster
@dataclass(frozen=True)
class RasterHandle:
    origin_x: float    # lng of the top-left corner
    origin_y: float    # lat of the top-left corner
    res_x: float       # deg/pixel, positive
    res_y: float       # deg/pixel, negative (rows run north to south)
    width: int
    height: int
    nodata: Optional[float] = None
    dataset: Any = field(default=None, compare=False, repr=False)

    @property
    def pixel_size_deg(self) -> float:
        return abs(self.res_x)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_lng, min_lat, max_lng, max_lat) of the full grid."""
        x1 = self.origin_x + self.width * self.res_x
        y1 = self.origin_y + self.height * self.res_y
        return (
            min(self.origin_x, x1),
            min(self.origin_y, y1),
            max(self.origin_x, x1),
            max(self.origin_y, y1),
        )


@dataclass(frozen=True)
class PixelWindow:
    """Inclusive pixel rectangle [col0..col1] x [row0..row1]."""
    col0: int
    row0: int
    col1: int
    row1: int

    @classmethod
    def empty(cls) -> "PixelWindow":
        return cls(0, 0, -1, -1)

    @property
    def width(self) -> int:
        return max(0, self.col1 - self.col0 + 1)

    @property
    def height(self) -> int:
        return max(0, self.row1 - self.row0 + 1)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0
# endregion


# region Queries
@dataclass(frozen=True)
class SpatialQuery:
    lat: float
    lng: float
    radius_km: float
    exponent: float = 2.0


@dataclass(frozen=True)
class TimeQuery:
    origin_lat: float
    origin_lng: float
    mode: str
    exponent: float
    max_time_min: int
# endregion


# region Bands and samples
@dataclass(frozen=True)
class Band:
    """[lower, upper) in domain units; display_upper is the clipped edge shown to users."""
    lower: float
    upper: float
    display_upper: Optional[float] = None

    @property
    def shown_upper(self) -> float:
        return self.upper if self.display_upper is None else self.display_upper


@dataclass
class CellSample:
    lat: float
    lng: float
    pop: float
    value: Optional[float] = None   # km or seconds; None = unreachable


@dataclass
class BandResult:
    lower: float
    upper: float
    population: float = 0.0
    weighted_contribution: float = 0.0
    weight_mass: float = 0.0
    cell_count: int = 0
    area_km2: Optional[float] = None

    @property
    def density(self) -> Optional[float]:
        if self.area_km2 is None:
            return None
        return self.population / max(self.area_km2, 1.0)

    def to_dict(self, scale: float = 1.0) -> Dict[str, Any]:
        d = {
            "lower": self.lower / scale,
            "upper": self.upper / scale,
            "population": round(self.population),
            "weightedContribution": round(self.weighted_contribution, 2),
            "cellCount": self.cell_count,
        }
        if self.area_km2 is not None:
            d["areaSqKm"] = round(max(self.area_km2, 1.0), 1)
            d["density"] = round(self.density)
        return d


@dataclass
class AggregationResult:
    total_population: float = 0.0
    raw_sum: float = 0.0
    weight_mass: float = 0.0
    bands: List[BandResult] = field(default_factory=list)
    cells_examined: int = 0
    cells_included: int = 0
    elapsed_ms: float = 0.0

    @property
    def normalized(self) -> float:
        return self.raw_sum / self.weight_mass if self.weight_mass > 0 else 0.0

    def to_dict(self, band_scale: float = 1.0) -> Dict[str, Any]:
        return {
            "totalPopulation": round(self.total_population),
            "rawSum": round(self.raw_sum, 2),
            "normalized": round(self.normalized, 2),
            "bands": [b.to_dict(band_scale) for b in self.bands],
            "cellsExamined": self.cells_examined,
            "cellsIncluded": self.cells_included,
            "computeTimeMs": round(self.elapsed_ms),
        }
# endregion


# region Travel time
@dataclass
class TravelTimeCell:
    lat: float
    lng: float
    pop: float
    driving: Optional[float] = None   # seconds
    transit: Optional[float] = None   # seconds


@dataclass
class Origin:
    id: str
    name: str
    lat: float
    lng: float


@dataclass
class OriginResult:
    origin: Origin
    cells: List[TravelTimeCell]
    computed_at: Optional[str] = None
    max_travel_time_sec: Optional[float] = None
    search_radius_km: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OriginResult":
        o = data["origin"]
        cells = [
            TravelTimeCell(
                lat=float(c["lat"]),
                lng=float(c["lng"]),
                pop=float(c["pop"]),
                driving=None if c.get("driving") is None else float(c["driving"]),
                transit=None if c.get("transit") is None else float(c["transit"]),
            )
            for c in data.get("cells") or []
        ]
        return cls(
            origin=Origin(str(o["id"]), str(o.get("name", o["id"])), float(o["lat"]), float(o["lng"])),
            cells=cells,
            computed_at=data.get("computedAt"),
            max_travel_time_sec=data.get("maxTravelTimeSec"),
            search_radius_km=data.get("searchRadiusKm"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": {
                "id": self.origin.id,
                "name": self.origin.name,
                "lat": self.origin.lat,
                "lng": self.origin.lng,
            },
            "computedAt": self.computed_at,
            "maxTravelTimeSec": self.max_travel_time_sec,
            "searchRadiusKm": self.search_radius_km,
            "cells": [
                {"lat": c.lat, "lng": c.lng, "pop": c.pop, "driving": c.driving, "transit": c.transit}
                for c in self.cells
            ],
        }


@dataclass
class ReachableCell:
    lat: float
    lng: float
    pop: float
    time: float     # effective seconds for the chosen mode
    weight: float   # pop * 1/t^n


@dataclass
class Coverage:
    """Fractions in [0,1] of cells carrying a value for each mode."""
    driving: float = 0.0
    transit: float = 0.0
    driving_near: float = 0.0
    transit_near: float = 0.0
    total_cells: int = 0
    near_cells: int = 0

    def to_dict(self) -> Dict[str, Any]:
        pct = lambda f: round(f * 100.0, 1)
        return {
            "drivingCoveragePct": pct(self.driving),
            "transitCoveragePct": pct(self.transit),
            "drivingNearPct": pct(self.driving_near),
            "transitNearPct": pct(self.transit_near),
            "totalCells": self.total_cells,
            "nearCells": self.near_cells,
        }


@dataclass
class TravelTimeResult:
    mode: str
    max_time_min: int
    aggregation: AggregationResult
    cells: List[ReachableCell]
    coverage: Coverage

    def to_dict(self) -> Dict[str, Any]:
        d = self.aggregation.to_dict(band_scale=60.0)
        d.update({
            "mode": self.mode,
            "maxTimeMin": self.max_time_min,
            "totalReachable": len(self.cells),
            "coverage": self.coverage.to_dict(),
        })
        return d
# endregion


# region Supercells
@dataclass
class Tile:
    lat_index: int
    lng_index: int
    size_deg: float
    total_pop: float
    total_weight: float
    mean_metric: float
    cell_count: int

    @property
    def lat(self) -> float:
        return self.lat_index * self.size_deg

    @property
    def lng(self) -> float:
        return self.lng_index * self.size_deg

    @property
    def center(self) -> Tuple[float, float]:
        half = self.size_deg / 2.0
        return self.lat + half, self.lng + half

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.lng, self.lat, self.lng + self.size_deg, self.lat + self.size_deg

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bounds": list(self.bounds),
            "pop": self.total_pop,
            "weight": self.total_weight,
            "metric": self.mean_metric,
            "cellCount": self.cell_count,
        }
# endregion
