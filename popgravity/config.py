# config.py
import os

EARTH_R_KM = 6371.0  # spherical Earth, mean radius (km)

# Weight clamps for 1/r^n so samples at the anchor stay finite
MIN_DISTANCE_KM = 0.1
MIN_TIME_SEC = 60.0

# Radius used for the "near origin" transit coverage check
NEAR_RADIUS_KM = 50.0

TIME_BANDS_MIN = [
    (0, 15),
    (15, 30),
    (30, 45),
    (45, 60),
    (60, 90),
    (90, 120),
    (120, 180),
]

# GHS-POP 30 arc-second grid (~1 km)
PIXEL_SIZE_DEG = 1.0 / 120.0
SUPERCELL_DOWNSAMPLE = 4
SUPERCELL_SIZE_DEG = PIXEL_SIZE_DEG * SUPERCELL_DOWNSAMPLE

DATA_DIR = os.environ.get("POPGRAVITY_DATA_DIR", "data")
TIFF_FILENAME = "GHS_POP_E2025_GLOBE_R2023A_4326_30ss_V1_0.tif"
POPULATION_TIF = os.environ.get("POPULATION_TIF", os.path.join(DATA_DIR, TIFF_FILENAME))
GEOTIFF_URL = os.environ.get("GEOTIFF_URL") or None

TRAVEL_TIME_DIR = os.environ.get("TRAVEL_TIME_DIR", os.path.join(DATA_DIR, "travel-time"))
TRAVEL_TIME_URL = os.environ.get("TRAVEL_TIME_URL") or None

HTTP_TIMEOUT_SEC = 5
FETCH_CHUNK_BYTES = 64 * 1024

# Most recent sessionIds kept by the HTTP API; older ones are evicted first
MAX_SESSIONS = 256
