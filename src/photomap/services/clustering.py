"""
Grid-based clustering of photo markers.

Photos are bucketed into square grid cells whose side depends on the map
zoom level: 104.8576 degrees at zoom 0, halving at every level down to
0.0001 degrees at zoom 20. All photos sharing a cell are shown as one
marker. Clusters are rebuilt from scratch for every map render.
"""

import math
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..models.photo import Photo

MIN_ZOOM = 0
MAX_ZOOM = 20

# Cell side in degrees per zoom level
GRID_SIZES: dict[int, float] = {
    20: 0.0001,
    19: 0.0002,
    18: 0.0004,
    17: 0.0008,
    16: 0.0016,
    15: 0.0032,
    14: 0.0064,
    13: 0.0128,
    12: 0.0256,
    11: 0.0512,
    10: 0.1024,
    9: 0.2048,
    8: 0.4096,
    7: 0.8192,
    6: 1.6384,
    5: 3.2768,
    4: 6.5536,
    3: 13.1072,
    2: 26.2144,
    1: 52.4288,
    0: 104.8576,
}

ZOOM_IN_STEP = 2


@dataclass(frozen=True)
class GridCell:
    """Integer coordinates of a grid cell: x from longitude, y from latitude."""

    x: int
    y: int


@dataclass
class PhotoCluster:
    """Photos that share one grid cell at a given zoom level."""

    cell: GridCell
    photos: list[Photo] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.photos)

    @property
    def is_single(self) -> bool:
        return len(self.photos) == 1

    @property
    def center(self) -> tuple[float, float]:
        """Mean (latitude, longitude) of the members, used as marker position."""
        count = len(self.photos)
        latitude = sum(photo.latitude for photo in self.photos) / count  # type: ignore[misc]
        longitude = sum(photo.longitude for photo in self.photos) / count  # type: ignore[misc]
        return latitude, longitude

    def representative(self, rng: random.Random | None = None) -> Photo:
        """Pick the photo shown as marker thumbnail, uniformly at random."""
        return (rng or random).choice(self.photos)


def clamp_zoom(zoom: int) -> int:
    """Clamp a map zoom level to the supported range."""
    return min(max(int(zoom), MIN_ZOOM), MAX_ZOOM)


def grid_size_for_zoom(zoom: int) -> float:
    """Cell side in degrees for a zoom level (clamped)."""
    return GRID_SIZES[clamp_zoom(zoom)]


def cell_for(latitude: float, longitude: float, grid_size: float) -> GridCell:
    return GridCell(x=math.floor(longitude / grid_size), y=math.floor(latitude / grid_size))


def locatable_photos(photos: Iterable[Photo]) -> list[Photo]:
    """Keep only photos with finite latitude and longitude."""
    return [photo for photo in photos if photo.has_location]


def cluster_photos(photos: Sequence[Photo], zoom: int) -> list[PhotoCluster]:
    """
    Group photos by grid cell for a zoom level.

    Every photo lands in exactly one cluster. Callers filter out photos
    without coordinates first (see ``locatable_photos``). Cluster order is
    not significant.

    Args:
        photos: Photos with valid coordinates
        zoom: Map zoom level, clamped to [0, 20]

    Returns:
        list: One cluster per occupied cell
    """
    grid_size = grid_size_for_zoom(zoom)
    grid: dict[GridCell, PhotoCluster] = {}

    for photo in photos:
        cell = cell_for(photo.latitude, photo.longitude, grid_size)  # type: ignore[arg-type]
        if cell not in grid:
            grid[cell] = PhotoCluster(cell=cell)
        grid[cell].photos.append(photo)

    return list(grid.values())


def find_cluster(
    clusters: Sequence[PhotoCluster], latitude: float, longitude: float, zoom: int
) -> PhotoCluster | None:
    """
    Find the cluster whose marker sits at a clicked position.

    A marker is drawn at its cluster center, which always lies inside the
    cluster's cell; the nearest center is used when rounding puts the
    click on a neighbouring cell.
    """
    if not clusters:
        return None

    cell = cell_for(latitude, longitude, grid_size_for_zoom(zoom))
    for cluster in clusters:
        if cluster.cell == cell:
            return cluster

    def distance(cluster: PhotoCluster) -> float:
        center_lat, center_lng = cluster.center
        return (center_lat - latitude) ** 2 + (center_lng - longitude) ** 2

    return min(clusters, key=distance)


def zoom_in_target(cluster: PhotoCluster, zoom: int) -> tuple[tuple[float, float], int]:
    """Map center and zoom level to show after clicking a multi-photo marker."""
    return cluster.center, min(clamp_zoom(zoom) + ZOOM_IN_STEP, MAX_ZOOM)
