# lvgrid/domain/geometry.py
"""
Plane and sphere helpers shared by every synthesis stage.

Conventions: positions are LatLon in WGS84 degrees. Planar helpers treat lon as x and
lat as y. Distances returned in meters, areas in square meters unless the name says deg2.
"""

import math
from collections.abc import Sequence
from functools import cmp_to_key

from lvgrid.domain.entities.geography import LatLon
from lvgrid.domain.errors import ConvexHullError

EARTH_RADIUS_M = 6_378_137.0


def haversine_m(a: LatLon, b: LatLon) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def polyline_length_m(points: Sequence[LatLon]) -> float:
    return sum(haversine_m(points[i - 1], points[i]) for i in range(1, len(points)))


def is_between(a: LatLon, b: LatLon, c: LatLon, epsilon: float = 1e-12) -> bool:
    """True if c lies on the segment a-b (collinear within epsilon, inside the bounds)."""
    cross = (c.lat - a.lat) * (b.lon - a.lon) - (c.lon - a.lon) * (b.lat - a.lat)
    if abs(cross) > epsilon:
        return False
    dot = (c.lon - a.lon) * (b.lon - a.lon) + (c.lat - a.lat) * (b.lat - a.lat)
    if dot < 0:
        return False
    squared_length = (b.lon - a.lon) ** 2 + (b.lat - a.lat) ** 2
    return dot <= squared_length


def ray_casting(polygon: Sequence[LatLon], p: LatLon) -> bool:
    """Even-odd point-in-polygon test. The ring may or may not repeat its first point."""
    inside = False
    n = len(polygon)
    for i in range(n):
        a, b = polygon[i - 1], polygon[i]
        if (a.lat > p.lat) != (b.lat > p.lat):
            x = a.lon + (p.lat - a.lat) * (b.lon - a.lon) / (b.lat - a.lat)
            if p.lon < x:
                inside = not inside
    return inside


def polygon_area_deg2(points: Sequence[LatLon]) -> float:
    # shoelace; a repeated closing point contributes zero
    area = 0.0
    j = len(points) - 1
    for i in range(len(points)):
        area += (points[j].lon + points[i].lon) * (points[j].lat - points[i].lat)
        j = i
    return abs(area) / 2


def geo_to_m2(area_deg2: float, reference: LatLon, correction_m2: float = 0.0) -> float:
    """
    Convert an area in degree² to m² at the reference position.

    The area is treated as a square of side sqrt(area) degrees whose two legs are
    measured along the meridian and the parallel through the reference point.
    """
    side = math.sqrt(area_deg2)
    north = haversine_m(reference, LatLon(reference.lat + side, reference.lon))
    east = haversine_m(reference, LatLon(reference.lat, reference.lon + side))
    return north * east - correction_m2


def building_power_kw(area_m2: float, power_density_w_m2: float) -> float:
    return float(math.ceil(area_m2 * power_density_w_m2 / 1000.0))


def centroid(points: Sequence[LatLon]) -> LatLon:
    n = len(points)
    if n == 0:
        raise ValueError("centroid of zero points")
    return LatLon(sum(p.lat for p in points) / n, sum(p.lon for p in points) / n)


# ------------------------- Convex hull -------------------------------


def _cross(o: tuple[int, int], a: tuple[int, int], b: tuple[int, int]) -> int:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Sequence[LatLon], precision: int = 5) -> list[LatLon]:
    """
    Graham scan on an integer grid of 10**-precision degrees.

    Integer coordinates keep every orientation test exact, so the scan cannot cycle on
    nearly collinear input. Returns the hull counter-clockwise as a closed ring.
    Raises ConvexHullError when fewer than three non-collinear grid points remain.
    """
    scale = 10**precision
    grid = {(round(p.lon * scale), round(p.lat * scale)) for p in points}
    if len(grid) < 3:
        raise ConvexHullError(f"need at least 3 distinct points, got {len(grid)}")

    pivot = min(grid, key=lambda q: (q[1], q[0]))
    rest = [q for q in grid if q != pivot]

    def by_angle(a, b):
        c = _cross(pivot, a, b)
        if c != 0:
            return -1 if c > 0 else 1
        da = (a[0] - pivot[0]) ** 2 + (a[1] - pivot[1]) ** 2
        db = (b[0] - pivot[0]) ** 2 + (b[1] - pivot[1]) ** 2
        return (da > db) - (da < db)

    rest.sort(key=cmp_to_key(by_angle))

    stack = [pivot]
    for q in rest:
        while len(stack) > 1 and _cross(stack[-2], stack[-1], q) <= 0:
            stack.pop()
        stack.append(q)

    if len(stack) < 3:
        raise ConvexHullError("points are collinear")

    ring = [LatLon(y / scale, x / scale) for x, y in stack]
    ring.append(ring[0])
    return ring
