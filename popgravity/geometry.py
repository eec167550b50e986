# region Imports
import math
import numpy as np
from .config import EARTH_R_KM
# endregion

# region Great-circle Distance
def haversine_km(lat1, lng1, lat2, lng2):
    """Haversine distance in km. Accepts scalars or numpy arrays (broadcast)."""
    to_rad = math.pi / 180.0
    dlat = (np.asarray(lat2) - lat1) * to_rad
    dlng = (np.asarray(lng2) - lng1) * to_rad
    a = (
        np.sin(dlat * 0.5) ** 2
        + np.cos(np.asarray(lat1) * to_rad) * np.cos(np.asarray(lat2) * to_rad) * np.sin(dlng * 0.5) ** 2
    )
    return 2.0 * EARTH_R_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial bearing from point 1 to point 2, degrees in [0, 360)."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dl = math.radians(lng2 - lng1)
    y = math.sin(dl) * math.cos(p2)
    x = math.cos(p1) * math.sin(p2) - math.sin(p1) * math.cos(p2) * math.cos(dl)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
# endregion

# region Degree-to-Kilometer Conversions
def km2deg_lat(km: float) -> float:
    return km / EARTH_R_KM * (180.0 / math.pi)


def km2deg_lon(km: float, lat: float) -> float:
    return km2deg_lat(km) / math.cos(math.radians(lat))


def bounding_box(lat: float, lng: float, radius_km: float):
    """(min_lng, min_lat, max_lng, max_lat) around a point.

    Locally flat approximation; it grows loose for radii of hundreds of km and
    near the poles.
    """
    d_lat = km2deg_lat(radius_km)
    d_lng = km2deg_lon(radius_km, lat)
    return lng - d_lng, lat - d_lat, lng + d_lng, lat + d_lat
# endregion

# region Pixel Area
def pixel_area_km2(lat, pixel_size_deg: float):
    """Flat-Earth area of a square pixel at a latitude (scalar or array)."""
    height_km = pixel_size_deg / 360.0 * 2.0 * math.pi * EARTH_R_KM
    width_km = height_km * np.cos(np.radians(lat))
    return height_km * width_km
# endregion
