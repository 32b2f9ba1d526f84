"""Locate a reported coordinate along a segmented leg."""
from dataclasses import dataclass
from typing import List, Optional

from ..models.base import Coordinates, LegPoint, LegSegment, Projection
from ..utils.geometry import get_distance, project_onto_segment

# Distances closer than this are considered equal
TIE_EPSILON_METERS = 1e-6


@dataclass(frozen=True)
class NearestPoint:
    index: int
    point: LegPoint
    distance: float

    @property
    def waypoint_index(self) -> Optional[int]:
        return self.point.waypoint_index


def nearest_segment(coordinates: Coordinates, segments: List[LegSegment]) -> Optional[Projection]:
    """
    Find the segment closest to the coordinates.

    Equidistant candidates resolve to the one later in travel order.
    """
    best: Optional[Projection] = None
    for i, segment in enumerate(segments):
        distance, fraction = project_onto_segment(coordinates, segment.start, segment.end)
        if best is None or distance <= best.distance + TIE_EPSILON_METERS:
            best = Projection(
                segment_index=i,
                segment=segment,
                distance=min(distance, best.distance) if best else distance,
                fraction=fraction,
            )
    return best


def nearest_point(coordinates: Coordinates, points: List[LegPoint], start_index: int = 0) -> Optional[NearestPoint]:
    """Closest point at or after start_index; later points win ties."""
    best: Optional[NearestPoint] = None
    for i in range(start_index, len(points)):
        distance = get_distance(coordinates, points[i].coordinates)
        if best is None or distance <= best.distance + TIE_EPSILON_METERS:
            best = NearestPoint(index=i, point=points[i], distance=min(distance, best.distance) if best else distance)
    return best


def current_waypoint(points: List[LegPoint], progress: float) -> Optional[LegPoint]:
    """Last step or stop already reached at the given distance along the leg."""
    reached = None
    for point in points:
        if not point.is_waypoint:
            continue
        if point.cumulative_distance > progress + TIE_EPSILON_METERS:
            break
        reached = point
    return reached
