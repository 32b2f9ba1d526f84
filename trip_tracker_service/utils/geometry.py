"""Geodesic helpers shared by segmentation, projection and guidance."""
import math
from typing import Tuple

from geopy.distance import geodesic

from ..models.base import Coordinates

# Earth's radius in meters
EARTH_RADIUS_M = 6371000


def get_distance(start: Coordinates, end: Coordinates) -> float:
    """Geodesic distance in meters between two points."""
    return geodesic(start.as_tuple(), end.as_tuple()).meters


def calculate_bearing(start: Coordinates, destination: Coordinates) -> float:
    """Initial bearing in degrees (0-360) from start to destination."""
    lat1, lon1 = math.radians(start.lat), math.radians(start.lon)
    lat2, lon2 = math.radians(destination.lat), math.radians(destination.lon)

    dlon = lon2 - lon1

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    bearing = math.degrees(math.atan2(y, x))
    # Normalize to 0-360
    return (bearing + 360) % 360


def angle_diff(a: float, b: float) -> float:
    """Signed difference b - a in degrees, normalized to (-180, 180]."""
    diff = (b - a) % 360
    if diff > 180:
        diff -= 360
    return diff


def create_point(start: Coordinates, distance_in_meters: float, bearing: float) -> Coordinates:
    """Point lying distance_in_meters away from start on the given bearing."""
    destination = geodesic(meters=distance_in_meters).destination(start.as_tuple(), bearing)
    return Coordinates(lat=destination.latitude, lon=destination.longitude)


def gps_to_meters(point: Coordinates, ref: Coordinates) -> Tuple[float, float]:
    """Local tangent plane x/y in meters of point relative to ref."""
    lat_rad = math.radians(point.lat)
    lon_rad = math.radians(point.lon)
    ref_lat_rad = math.radians(ref.lat)
    ref_lon_rad = math.radians(ref.lon)

    x = EARTH_RADIUS_M * math.cos(ref_lat_rad) * (lon_rad - ref_lon_rad)
    y = EARTH_RADIUS_M * (lat_rad - ref_lat_rad)
    return x, y


def project_onto_segment(point: Coordinates, start: Coordinates, end: Coordinates) -> Tuple[float, float]:
    """
    Project point onto the segment start -> end.

    Returns (distance in meters from the point to the segment, position of the
    projection along the segment clamped to 0..1).
    """
    point_x, point_y = gps_to_meters(point, start)
    end_x, end_y = gps_to_meters(end, start)

    line_len_sq = end_x ** 2 + end_y ** 2
    if line_len_sq == 0:
        return math.sqrt(point_x ** 2 + point_y ** 2), 0.0

    t = max(0.0, min(1.0, (point_x * end_x + point_y * end_y) / line_len_sq))

    proj_x = t * end_x
    proj_y = t * end_y
    return math.sqrt((point_x - proj_x) ** 2 + (point_y - proj_y) ** 2), t


def get_distance_from_line(start: Coordinates, end: Coordinates, point: Coordinates) -> float:
    """Distance in meters between a point and the segment start -> end."""
    distance, _ = project_onto_segment(point, start, end)
    return distance


def is_point_between(start: Coordinates, end: Coordinates, point: Coordinates, tolerance: float) -> bool:
    """Whether point lies on the segment start -> end, within tolerance meters of it."""
    point_x, point_y = gps_to_meters(point, start)
    end_x, end_y = gps_to_meters(end, start)

    line_len_sq = end_x ** 2 + end_y ** 2
    if line_len_sq == 0:
        return math.sqrt(point_x ** 2 + point_y ** 2) <= tolerance

    t = (point_x * end_x + point_y * end_y) / line_len_sq
    if t < 0 or t > 1:
        return False
    return get_distance_from_line(start, end, point) <= tolerance
