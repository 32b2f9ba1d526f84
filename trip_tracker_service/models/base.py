from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class LegPoint:
    """A point of a leg's travel-ordered geometry, optionally a step or stop."""
    coordinates: Coordinates
    waypoint_index: Optional[int] = None  # index into the leg's waypoints
    cumulative_distance: float = 0.0  # in meters from the leg's start

    @property
    def is_waypoint(self) -> bool:
        return self.waypoint_index is not None


@dataclass(frozen=True)
class LegSegment:
    start: Coordinates
    end: Coordinates
    distance: float  # in meters
    time_in_segment: float  # in seconds
    cumulative_distance: float  # in meters, includes this segment
    cumulative_time: float  # in seconds, includes this segment
    mode: str
    start_waypoint_index: Optional[int] = None

    @property
    def start_distance(self) -> float:
        """Distance from the leg's start to this segment's start."""
        return self.cumulative_distance - self.distance

    @property
    def start_time_offset(self) -> float:
        """Scheduled seconds from the leg's start to this segment's start."""
        return self.cumulative_time - self.time_in_segment


@dataclass(frozen=True)
class Projection:
    """Where a coordinate falls on a leg's segment list."""
    segment_index: int
    segment: LegSegment
    distance: float  # meters from the coordinate to the segment
    fraction: float  # 0..1 along the segment

    @property
    def elapsed(self) -> float:
        """Scheduled seconds from the leg's start to the projected point."""
        return self.segment.start_time_offset + self.fraction * self.segment.time_in_segment

    @property
    def progress(self) -> float:
        """Distance in meters from the leg's start to the projected point."""
        return self.segment.start_distance + self.fraction * self.segment.distance


def utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
