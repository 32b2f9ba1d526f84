from collections import defaultdict
import logging
from typing import Dict, List, Optional, Tuple

import polyline
from shapely.geometry import LineString, Point

from ..config.settings import Settings, get_settings
from ..exceptions import PolylineDecodeError
from ..models.base import Coordinates, LegPoint, LegSegment
from ..models.itinerary import Leg
from ..models.position import SegmentedLeg, Waypoint
from ..utils.geometry import get_distance, is_point_between, project_onto_segment

logger = logging.getLogger(__name__)

POLYLINE_PRECISION = 5


def decode_polyline(encoded: str) -> List[Coordinates]:
    """Decode a precision 5 encoded polyline into coordinates."""
    if any(ord(c) < 63 or ord(c) > 126 for c in encoded):
        raise PolylineDecodeError(f"Invalid character in encoded polyline: {encoded!r}")
    if encoded and ord(encoded[-1]) - 63 >= 0x20:
        raise PolylineDecodeError(f"Truncated encoded polyline: {encoded!r}")
    try:
        points = polyline.decode(encoded, POLYLINE_PRECISION)
    except (IndexError, ValueError, TypeError) as e:
        raise PolylineDecodeError(f"Could not decode polyline {encoded!r}: {e}") from e
    return [Coordinates(lat=lat, lon=lon) for lat, lon in points]


class LegSegmenter:
    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the segmenter with snapping and exclusion radii."""
        self.settings = settings or get_settings()

    def get_waypoints(self, leg: Leg) -> List[Waypoint]:
        """Steps of a self-guided leg, or the stops reached on a transit leg."""
        if leg.transit_leg:
            return list(leg.intermediate_stops) + [leg.to_place]
        return list(leg.steps)

    def segment(self, leg: Leg) -> SegmentedLeg:
        waypoints = self.get_waypoints(leg)
        result = SegmentedLeg(leg=leg, waypoints=waypoints)

        raw = self._raw_points(leg)
        if len(raw) <= 1:
            logger.warning(f"{leg.mode} leg has {len(raw)} point(s), no segments produced")
            result.points = [LegPoint(coordinates=c) for c in raw]
            return result

        points = self._inject_waypoints(raw, [w.to_coordinates() for w in waypoints])
        points = self._exclude_near_waypoints(points, [w.to_coordinates() for w in waypoints])
        points = self._merge_duplicates(points)

        result.points, result.segments = self._build_segments(leg, points)
        return result

    def create_segments(self, leg: Leg) -> List[LegSegment]:
        return self.segment(leg).segments

    def _raw_points(self, leg: Leg) -> List[Coordinates]:
        decoded = decode_polyline(leg.leg_geometry.points) if leg.leg_geometry else []
        raw = [leg.from_place.to_coordinates()] + decoded + [leg.to_place.to_coordinates()]

        deduped: List[Coordinates] = []
        for coordinates in raw:
            if not deduped or deduped[-1] != coordinates:
                deduped.append(coordinates)
        return deduped

    def _inject_waypoints(self, raw: List[Coordinates], waypoints: List[Coordinates]) -> List[LegPoint]:
        """Insert each waypoint between the pair of geometry points it falls on."""
        slots: Dict[int, List[Tuple[float, int]]] = defaultdict(list)
        last_slot = 0
        for waypoint_index, waypoint in enumerate(waypoints):
            slot = self._find_slot(raw, waypoint, last_slot)
            _, t = project_onto_segment(waypoint, raw[slot], raw[slot + 1])
            slots[slot].append((t, waypoint_index))
            last_slot = slot

        points: List[LegPoint] = []
        for i, coordinates in enumerate(raw):
            points.append(LegPoint(coordinates=coordinates))
            for _, waypoint_index in sorted(slots.get(i, [])):
                points.append(LegPoint(coordinates=waypoints[waypoint_index], waypoint_index=waypoint_index))
        return points

    def _find_slot(self, raw: List[Coordinates], waypoint: Coordinates, start: int) -> int:
        # Waypoints arrive in travel order, so search forward from the previous one.
        for i in range(start, len(raw) - 1):
            if is_point_between(raw[i], raw[i + 1], waypoint, self.settings.WAYPOINT_SNAP_TOLERANCE):
                return i

        # Off the geometry: use the closest pair instead.
        target = Point(waypoint.lon, waypoint.lat)
        nearest_slot = start
        min_distance = float('inf')
        for i in range(start, len(raw) - 1):
            pair = LineString([(raw[i].lon, raw[i].lat), (raw[i + 1].lon, raw[i + 1].lat)])
            distance = pair.distance(target)
            if distance < min_distance:
                min_distance = distance
                nearest_slot = i
        return nearest_slot

    def _exclude_near_waypoints(self, points: List[LegPoint], waypoints: List[Coordinates]) -> List[LegPoint]:
        """Drop geometry points that sit on top of a step or stop."""
        radius = self.settings.WAYPOINT_EXCLUSION_RADIUS
        last = len(points) - 1
        kept = []
        for i, point in enumerate(points):
            if not point.is_waypoint and 0 < i < last and any(
                get_distance(point.coordinates, waypoint) <= radius for waypoint in waypoints
            ):
                continue
            kept.append(point)
        return kept

    def _merge_duplicates(self, points: List[LegPoint]) -> List[LegPoint]:
        merged: List[LegPoint] = []
        for point in points:
            if merged and merged[-1].coordinates == point.coordinates:
                if not merged[-1].is_waypoint and point.is_waypoint:
                    merged[-1] = point
                continue
            merged.append(point)
        return merged

    def _build_segments(self, leg: Leg, points: List[LegPoint]) -> Tuple[List[LegPoint], List[LegSegment]]:
        """Annotate points with distance along the leg and allocate the leg's duration by distance."""
        distances = [
            get_distance(points[i].coordinates, points[i + 1].coordinates)
            for i in range(len(points) - 1)
        ]
        total_distance = sum(distances)
        if total_distance <= 0:
            logger.warning(f"{leg.mode} leg has zero length, no segments produced")
            return points, []

        duration = leg.total_duration
        annotated = [LegPoint(coordinates=points[0].coordinates, waypoint_index=points[0].waypoint_index)]
        segments: List[LegSegment] = []
        cumulative_distance = 0.0
        cumulative_time = 0.0
        for i, distance in enumerate(distances):
            start, end = points[i], points[i + 1]
            if distance > 0:
                cumulative_distance += distance
                time_so_far = duration * cumulative_distance / total_distance
                segments.append(LegSegment(
                    start=start.coordinates,
                    end=end.coordinates,
                    distance=distance,
                    time_in_segment=time_so_far - cumulative_time,
                    cumulative_distance=cumulative_distance,
                    cumulative_time=time_so_far,
                    mode=leg.mode,
                    start_waypoint_index=start.waypoint_index,
                ))
                cumulative_time = time_so_far
            annotated.append(LegPoint(
                coordinates=end.coordinates,
                waypoint_index=end.waypoint_index,
                cumulative_distance=cumulative_distance,
            ))

        logger.debug(f"Segmented {leg.mode} leg into {len(segments)} segments over {total_distance:.1f}m")
        return annotated, segments
