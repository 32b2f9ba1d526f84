from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from ..exceptions import EmptyItineraryError
from ..models.base import Coordinates, Projection, utc
from ..models.itinerary import Itinerary, Leg
from ..models.position import SegmentedLeg
from ..models.tracking import TripStatus
from ..utils.geometry import get_distance
from .leg_segmenter import LegSegmenter
from .position_projector import TIE_EPSILON_METERS, nearest_segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of classifying one position against the itinerary."""
    status: TripStatus
    deviation: float  # meters from the planned path
    leg: Optional[Leg] = None
    segmented_leg: Optional[SegmentedLeg] = None
    projection: Optional[Projection] = None
    delta_seconds: Optional[float] = None  # actual minus expected elapsed time


class ScheduleClassifier:
    def __init__(self, settings: Optional[Settings] = None, segmenter: Optional[LegSegmenter] = None):
        self.settings = settings or get_settings()
        self.segmenter = segmenter or LegSegmenter(self.settings)

    def get_active_leg(self, itinerary: Itinerary, now: datetime) -> Optional[Leg]:
        """The leg scheduled to be under way at the given time."""
        now = utc(now)
        for leg in itinerary.legs:
            if leg.start_time <= now < leg.end_time:
                return leg
        return None

    def classify(self, itinerary: Itinerary, coordinates: Coordinates, now: datetime) -> ScheduleResult:
        if not itinerary.legs:
            raise EmptyItineraryError("Itinerary has no legs to track against")
        now = utc(now)

        leg = self.get_active_leg(itinerary, now)
        if leg is not None:
            segmented = self.segmenter.segment(leg)
            projection = nearest_segment(coordinates, segmented.segments)
        else:
            segmented, projection = self._nearest_leg(itinerary, coordinates)
            leg = segmented.leg if segmented else itinerary.legs[0]
            logger.debug(f"No leg active at {now.isoformat()}, using nearest leg by position")

        if projection is None:
            deviation = get_distance(coordinates, leg.from_place.to_coordinates())
            return ScheduleResult(TripStatus.DEVIATED, deviation, leg, segmented)

        if projection.distance > self.settings.DEVIATION_THRESHOLD:
            return ScheduleResult(TripStatus.DEVIATED, projection.distance, leg, segmented, projection)

        actual = (now - leg.start_time).total_seconds()
        delta = actual - projection.elapsed
        return ScheduleResult(self._status_for_delta(delta), projection.distance, leg, segmented, projection, delta)

    def _status_for_delta(self, delta: float) -> TripStatus:
        if delta < -self.settings.AHEAD_OF_SCHEDULE_THRESHOLD_SECONDS:
            return TripStatus.AHEAD_OF_SCHEDULE
        if delta > self.settings.BEHIND_SCHEDULE_THRESHOLD_SECONDS:
            return TripStatus.BEHIND_SCHEDULE
        return TripStatus.ON_SCHEDULE

    def _nearest_leg(self, itinerary: Itinerary, coordinates: Coordinates):
        best_leg: Optional[SegmentedLeg] = None
        best_projection: Optional[Projection] = None
        for leg in itinerary.legs:
            segmented = self.segmenter.segment(leg)
            projection = nearest_segment(coordinates, segmented.segments)
            if projection is None:
                continue
            if best_projection is None or projection.distance <= best_projection.distance + TIE_EPSILON_METERS:
                best_leg, best_projection = segmented, projection
        return best_leg, best_projection
