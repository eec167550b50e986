from .errors import DataUnavailable, DecodeFailure, InvalidRequest, Superseded
from .models import AggregationResult, SpatialQuery, TimeQuery
from .population import compute_population, extract_populated_cells
from .raster import RasterSource
from .supercells import downsample
from .travel_time import TravelTimeStore, filter_travel_time

__version__ = "0.1.0"
