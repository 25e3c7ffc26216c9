"""
Geographic and screen-space geometry helpers.

Interactive code works with (lat, lng) tuples. The persistence boundary
uses the GeoJSON convention of longitude-first pairs; conversion between
the two happens only in payload assembly, never inside the editors.
"""
import math
from typing import Iterable, List, Sequence, Tuple

LatLng = Tuple[float, float]
ScreenPoint = Tuple[float, float]

EARTH_RADIUS_METERS = 6371000


def pixel_distance(a: ScreenPoint, b: ScreenPoint) -> float:
    """Euclidean distance between two screen points, in pixels"""
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2)


def polygon_centroid(ring: Sequence[LatLng]) -> LatLng:
    """
    Arithmetic mean of the ring's latitudes and longitudes.
    Only a display/reference point, not the area centroid.
    """
    if not ring:
        raise ValueError("Cannot compute the centroid of an empty ring")
    lat = sum(point[0] for point in ring) / len(ring)
    lng = sum(point[1] for point in ring) / len(ring)
    return lat, lng


def to_exchange_order(ring: Iterable[LatLng]) -> List[Tuple[float, float]]:
    """(lat, lng) ring -> [(lng, lat), ...]. The ring is not closed explicitly."""
    return [(lng, lat) for lat, lng in ring]


def from_exchange_order(coordinates: Sequence[Sequence[float]]) -> List[LatLng]:
    """[(lng, lat), ...] -> (lat, lng) ring"""
    return [(float(pair[1]), float(pair[0])) for pair in coordinates]


def open_ring(ring: Sequence[LatLng]) -> List[LatLng]:
    """Drop the repeated closing point of an explicitly closed ring"""
    points = list(ring)
    if len(points) > 1 and points[0] == points[-1]:
        points.pop()
    return points


def ring_bounds(points: Sequence[LatLng]) -> Tuple[LatLng, LatLng]:
    """Return ((south, west), (north, east)) for a non-empty point list"""
    if not points:
        raise ValueError("Cannot compute bounds of an empty point list")
    lats = [point[0] for point in points]
    lngs = [point[1] for point in points]
    return (min(lats), min(lngs)), (max(lats), max(lngs))


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great circle distance between two points given in decimal degrees.
    Returns distance in meters.
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(math.sqrt(a))

    return c * EARTH_RADIUS_METERS


def point_in_polygon(lat: float, lng: float, ring: Sequence[LatLng]) -> bool:
    """Ray casting test of a point against a (lat, lng) ring"""
    n = len(ring)
    inside = False

    j = n - 1
    for i in range(n):
        yi, xi = ring[i]
        yj, xj = ring[j]

        if ((yi > lat) != (yj > lat)) and \
           (lng < (xj - xi) * (lat - yi) / (yj - yi) + xi):
            inside = not inside
        j = i

    return inside
