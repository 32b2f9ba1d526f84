from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from .base import Coordinates, LegPoint, LegSegment, Projection
from .itinerary import Leg, Place, Step
from .mobility import MOBILITY_MODE_NONE

Waypoint = Union[Step, Place]


@dataclass
class SegmentedLeg:
    """A leg's travel-ordered points and the segments between them."""
    leg: Leg
    waypoints: List[Waypoint]
    points: List[LegPoint] = field(default_factory=list)
    segments: List[LegSegment] = field(default_factory=list)

    def waypoint_distance(self, waypoint_index: int) -> Optional[float]:
        """Distance along the leg at which the given step or stop is reached."""
        for point in self.points:
            if point.waypoint_index == waypoint_index:
                return point.cumulative_distance
        return None


@dataclass
class TravelerPosition:
    """Everything known about the traveler for a single position update."""
    expected_leg: Optional[Leg]
    next_leg: Optional[Leg]
    coordinates: Coordinates
    current_time: datetime
    speed: Optional[float] = None
    mobility_mode: str = MOBILITY_MODE_NONE
    segmented_leg: Optional[SegmentedLeg] = None
    projection: Optional[Projection] = None
