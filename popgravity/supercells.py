# region Imports
import math
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Tuple
from .config import SUPERCELL_SIZE_DEG
from .models import Tile
# endregion

# region Downsampling
def tile_key(lat: float, lng: float, tile_size_deg: float) -> Tuple[int, int]:
    return math.floor(lat / tile_size_deg), math.floor(lng / tile_size_deg)


def downsample(
    cells: Iterable,
    tile_size_deg: float = SUPERCELL_SIZE_DEG,
    metric: Callable = lambda c: c.time,
    weight: Callable = lambda c: c.weight,
) -> List[Tile]:
    """Merge cells into square tiles keyed by floor(lat/size), floor(lng/size).

    Per tile: total population, total weight and the population-weighted mean
    of `metric`. Sums use math.fsum, so the result depends only on which cells
    land in each tile, not on their order.
    """
    if not tile_size_deg > 0:
        raise ValueError(f"tile_size_deg must be positive, got {tile_size_deg!r}")

    groups: Dict[Tuple[int, int], list] = defaultdict(list)
    for c in cells:
        groups[tile_key(c.lat, c.lng, tile_size_deg)].append(c)

    tiles = []
    for (i, j) in sorted(groups):
        members = groups[(i, j)]
        total_pop = math.fsum(c.pop for c in members)
        pop_metric = math.fsum(c.pop * metric(c) for c in members)
        tiles.append(Tile(
            lat_index=i,
            lng_index=j,
            size_deg=tile_size_deg,
            total_pop=total_pop,
            total_weight=math.fsum(weight(c) for c in members),
            mean_metric=pop_metric / total_pop if total_pop > 0 else 0.0,
            cell_count=len(members),
        ))
    return tiles
# endregion
