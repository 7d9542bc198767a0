"""
Region tiling for discovery.

A city's bounding box is split into overlapping circular search cells sized
for the Places Nearby Search endpoint.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

from localinsights.features.discovery.schemas.grid_search import Bounds, Coordinates

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
MAX_SEARCH_RADIUS = 5000
OPTIMAL_RADIUS = 1000
MIN_RADIUS = 500
COVERAGE_OVERLAP = 0.2  # 20% overlap between adjacent cells


@dataclass(frozen=True)
class SubGrid:
    center: Coordinates
    radius: float


def calculate_distance(point1: Coordinates, point2: Coordinates) -> float:
    """Haversine distance in meters."""
    d_lat = math.radians(point2.lat - point1.lat)
    d_lng = math.radians(point2.lng - point1.lng)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(point1.lat)) * math.cos(math.radians(point2.lat)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def calculate_bounds_dimensions(bounds: Bounds) -> Tuple[float, float]:
    """Width and height of the bounds in meters, measured along the southwest edges."""
    sw = bounds.southwest
    ne = bounds.northeast
    width = calculate_distance(sw, Coordinates(lat=sw.lat, lng=ne.lng))
    height = calculate_distance(sw, Coordinates(lat=ne.lat, lng=sw.lng))
    return width, height


def _grid_dimensions(width: float, height: float) -> Tuple[int, int]:
    effective_radius = OPTIMAL_RADIUS * (1 - COVERAGE_OVERLAP)
    cols = max(1, math.ceil(width / (effective_radius * 2)))
    rows = max(1, math.ceil(height / (effective_radius * 2)))
    return cols, rows


def point_at_distance(start: Coordinates, distance: float, bearing: float) -> Coordinates:
    """Destination point given a start, a distance in meters and a bearing in degrees."""
    angular = distance / EARTH_RADIUS_METERS
    theta = math.radians(bearing)
    phi1 = math.radians(start.lat)
    lambda1 = math.radians(start.lng)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(angular) + math.cos(phi1) * math.sin(angular) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(angular) * math.cos(phi1),
        math.cos(angular) - math.sin(phi1) * math.sin(phi2),
    )
    return Coordinates(lat=math.degrees(phi2), lng=math.degrees(lambda2))


def generate_sub_grids(bounds: Bounds) -> List[SubGrid]:
    width, height = calculate_bounds_dimensions(bounds)
    cols, rows = _grid_dimensions(width, height)
    logger.info(f"Generating grid with {cols}x{rows} cells ({cols * rows} total)")

    cell_radius = min(OPTIMAL_RADIUS, max(MIN_RADIUS, min(width / cols, height / rows) / 2))

    lat_span = bounds.northeast.lat - bounds.southwest.lat
    lng_span = bounds.northeast.lng - bounds.southwest.lng

    sub_grids = []
    for row in range(rows):
        for col in range(cols):
            lat = bounds.southwest.lat + (row + 0.5) * lat_span / rows
            lng = bounds.southwest.lng + (col + 0.5) * lng_span / cols
            sub_grids.append(SubGrid(center=Coordinates(lat=lat, lng=lng), radius=cell_radius))
    return sub_grids


def sub_grid_from_point(center: Coordinates, radius: float = OPTIMAL_RADIUS) -> SubGrid:
    return SubGrid(center=center, radius=min(MAX_SEARCH_RADIUS, max(MIN_RADIUS, radius)))


def split_large_grid(sub_grid: SubGrid) -> List[SubGrid]:
    """Replace an oversized cell with a center cell plus, for large ones, a ring of 8."""
    if sub_grid.radius <= OPTIMAL_RADIUS:
        return [sub_grid]

    new_radius = min(OPTIMAL_RADIUS, sub_grid.radius / 2)
    cells = [SubGrid(center=sub_grid.center, radius=new_radius)]

    if sub_grid.radius > OPTIMAL_RADIUS * 1.5:
        ring_distance = sub_grid.radius * 0.7
        for bearing in range(0, 360, 45):
            cells.append(SubGrid(center=point_at_distance(sub_grid.center, ring_distance, bearing), radius=new_radius))
    return cells


def calculate_optimal_grid_system(bounds: Bounds) -> List[SubGrid]:
    optimized = []
    for grid in generate_sub_grids(bounds):
        optimized.extend(split_large_grid(grid))
    logger.info(f"Generated {len(optimized)} optimized sub-grids from bounds")
    return optimized


def sub_grid_bounds(sub_grid: SubGrid) -> Bounds:
    """Bounding rectangle of a circular cell, used to persist tiles as GeoGrid rows."""
    north = point_at_distance(sub_grid.center, sub_grid.radius, 0)
    east = point_at_distance(sub_grid.center, sub_grid.radius, 90)
    south = point_at_distance(sub_grid.center, sub_grid.radius, 180)
    west = point_at_distance(sub_grid.center, sub_grid.radius, 270)
    return Bounds(
        northeast=Coordinates(lat=north.lat, lng=east.lng),
        southwest=Coordinates(lat=south.lat, lng=west.lng),
    )
