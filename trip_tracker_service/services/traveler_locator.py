"""
Locate the traveler relative to the nearest step, stop or destination and
produce the matching instruction.
"""
from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from ..models.instructions import (
    DeviatedInstruction,
    GetOffHereInstruction,
    GetOffNextStopInstruction,
    GetOffSoonInstruction,
    OnTrackInstruction,
    TransitLegSummaryInstruction,
    TripInstruction,
    WaitForTransitInstruction,
)
from ..models.base import utc
from ..models.itinerary import Leg, Place, Step
from ..models.position import SegmentedLeg, TravelerPosition
from ..models.tracking import TripStatus
from ..utils.geometry import angle_diff, calculate_bearing, get_distance
from .leg_segmenter import LegSegmenter
from .position_projector import TIE_EPSILON_METERS, current_waypoint, nearest_point, nearest_segment

logger = logging.getLogger(__name__)


@dataclass
class Guidance:
    """An instruction plus the leg context it was derived from."""
    instruction: Optional[TripInstruction] = None
    step: Optional[Step] = None
    step_after: Optional[Step] = None
    approaching_end_of_leg: bool = False
    notify_bus_operator: bool = False

    @property
    def text(self) -> Optional[str]:
        return self.instruction.build() if self.instruction else None


def relative_direction_from_bearings(approach_bearing: float, step_bearing: float) -> str:
    """Turn needed to go from the approach bearing onto the step's bearing."""
    diff = angle_diff(approach_bearing, step_bearing)
    side = "RIGHT" if diff > 0 else "LEFT"
    magnitude = abs(diff)
    if magnitude <= 20:
        return "CONTINUE"
    if magnitude <= 60:
        return f"SLIGHTLY_{side}"
    if magnitude <= 135:
        return side
    if magnitude <= 170:
        return f"HARD_{side}"
    return f"UTURN_{side}"


class TravelerLocator:
    def __init__(self, settings: Optional[Settings] = None, segmenter: Optional[LegSegmenter] = None):
        self.settings = settings or get_settings()
        self.segmenter = segmenter or LegSegmenter(self.settings)

    def get_guidance(
        self,
        trip_status: TripStatus,
        position: TravelerPosition,
        is_start_of_trip: bool = False,
        delta_seconds: Optional[float] = None,
    ) -> Guidance:
        leg = position.expected_leg
        if leg is None:
            return Guidance()
        if position.segmented_leg is None or position.segmented_leg.leg is not leg:
            position.segmented_leg = self.segmenter.segment(leg)
            position.projection = nearest_segment(position.coordinates, position.segmented_leg.segments)

        if leg.is_walk_leg:
            if trip_status != TripStatus.DEVIATED:
                return self.align_traveler_to_trip(position, is_start_of_trip, trip_status, delta_seconds)
            return self.get_back_on_track(position, is_start_of_trip)
        if leg.transit_leg and trip_status != TripStatus.DEVIATED:
            return self.align_traveler_to_transit_trip(position)
        return Guidance()

    def get_back_on_track(self, position: TravelerPosition, is_start_of_trip: bool) -> Guidance:
        """Prefer a regular instruction if one is in range, otherwise point back to the street."""
        guidance = self.align_traveler_to_trip(position, is_start_of_trip, TripStatus.DEVIATED)
        if guidance.text is not None:
            return guidance

        street = self.get_reference_street(position)
        if street is None:
            return Guidance()
        logger.debug(f"Traveler is off route, pointing back to {street}")
        return Guidance(instruction=DeviatedInstruction(location_name=street))

    def get_reference_street(self, position: TravelerPosition) -> Optional[str]:
        """Street of the step the traveler should currently be following."""
        segmented = position.segmented_leg
        if position.projection is not None:
            reached = current_waypoint(segmented.points, position.projection.progress)
            if reached is not None:
                return segmented.waypoints[reached.waypoint_index].street_name
        step_index = self.snap_to_waypoint(position, segmented)
        if step_index is not None:
            return segmented.waypoints[step_index].street_name
        return position.expected_leg.to_place.name

    def align_traveler_to_trip(
        self,
        position: TravelerPosition,
        is_start_of_trip: bool,
        trip_status: TripStatus,
        delta_seconds: Optional[float] = None,
    ) -> Guidance:
        leg = position.expected_leg
        segmented = position.segmented_leg

        if self.is_approaching_end_of_leg(position):
            next_leg = position.next_leg
            if next_leg is not None and next_leg.is_bus_leg and self.is_within_operational_notify_window(
                trip_status, position, delta_seconds
            ):
                # The traveler waits for the bus whether or not the operator can be notified.
                return Guidance(
                    instruction=WaitForTransitInstruction(next_leg, position.current_time, self.settings.OTP_TIMEZONE),
                    approaching_end_of_leg=True,
                    notify_bus_operator=True,
                )
            return Guidance(
                instruction=self._on_track(self.distance_to_end_of_leg(position), location_name=leg.to_place.name),
                approaching_end_of_leg=True,
            )

        step_index = self.snap_to_waypoint(position, segmented)
        if step_index is None:
            return Guidance()
        step = segmented.waypoints[step_index]
        if self.is_position_past_waypoint(position, segmented, step_index) and not is_start_of_trip:
            return Guidance()

        distance = get_distance(position.coordinates, step.to_coordinates())
        step_after = segmented.waypoints[step_index + 1] if step_index + 1 < len(segmented.waypoints) else None
        instruction = self._on_track(
            distance,
            step=step,
            relative_direction=self._relative_direction(position, step, distance),
        )
        return Guidance(instruction=instruction, step=step, step_after=step_after)

    def align_traveler_to_transit_trip(self, position: TravelerPosition) -> Guidance:
        leg = position.expected_leg
        segmented = position.segmented_leg
        final_stop = leg.to_place.name

        if self.is_approaching_end_of_leg(position):
            return Guidance(instruction=GetOffHereInstruction(location_name=final_stop), approaching_end_of_leg=True)

        stop_index = self.snap_to_waypoint(position, segmented, exclude_current=True)
        if stop_index is None:
            return Guidance()

        stop: Place = segmented.waypoints[stop_index]
        stops_remaining = self.stops_until_end_of_leg(stop_index, leg)
        distance = get_distance(position.coordinates, stop.to_coordinates())
        if stops_remaining == 0 or (
            stops_remaining == 1
            and distance <= self.settings.TRIP_INSTRUCTION_UPCOMING_RADIUS
            and not self.is_position_past_waypoint(position, segmented, stop_index)
        ):
            return Guidance(instruction=GetOffNextStopInstruction(location_name=final_stop))
        if stops_remaining <= self.settings.TRANSIT_GET_OFF_SOON_STOP_COUNT:
            return Guidance(instruction=GetOffSoonInstruction(location_name=final_stop))
        if (
            stops_remaining == len(leg.intermediate_stops)
            and position.speed is not None
            and position.speed >= self.settings.MIN_TRANSIT_VEHICLE_SPEED
        ):
            return Guidance(instruction=TransitLegSummaryInstruction(leg))
        return Guidance()

    def snap_to_waypoint(
        self,
        position: TravelerPosition,
        segmented: SegmentedLeg,
        exclude_current: bool = False,
    ) -> Optional[int]:
        """Index of the next step or stop from the point nearest to the traveler."""
        points = segmented.points
        nearest = nearest_point(position.coordinates, points)
        if nearest is None:
            return None
        start = min(nearest.index + 1, len(points) - 1) if exclude_current else nearest.index
        for point in points[start:]:
            if point.is_waypoint:
                return point.waypoint_index
        return None

    def is_position_past_waypoint(self, position: TravelerPosition, segmented: SegmentedLeg, waypoint_index: int) -> bool:
        """Whether the traveler has progressed along the leg beyond the step or stop."""
        if position.projection is None:
            return False
        waypoint_distance = segmented.waypoint_distance(waypoint_index)
        if waypoint_distance is None:
            return False
        return position.projection.progress > waypoint_distance + TIE_EPSILON_METERS

    @staticmethod
    def stops_until_end_of_leg(stop_index: int, leg: Leg) -> int:
        """Stops left to ride; 0 when the next stop is the alighting stop."""
        return len(leg.intermediate_stops) - stop_index

    def distance_to_end_of_leg(self, position: TravelerPosition) -> float:
        return get_distance(position.coordinates, position.expected_leg.to_place.to_coordinates())

    def is_approaching_end_of_leg(self, position: TravelerPosition) -> bool:
        return self.distance_to_end_of_leg(position) <= self.settings.TRIP_INSTRUCTION_UPCOMING_RADIUS

    def is_within_operational_notify_window(
        self,
        trip_status: TripStatus,
        position: TravelerPosition,
        delta_seconds: Optional[float] = None,
    ) -> bool:
        """On schedule, or not too far ahead of it, and the bus has not left yet."""
        next_leg = position.next_leg
        if next_leg is None or utc(position.current_time) > next_leg.start_time:
            return False
        if trip_status == TripStatus.ON_SCHEDULE:
            return True
        if trip_status == TripStatus.AHEAD_OF_SCHEDULE:
            if delta_seconds is None:
                return False
            minutes_ahead = timedelta(seconds=-delta_seconds) // timedelta(minutes=1)
            return minutes_ahead <= self.settings.ACCEPTABLE_AHEAD_OF_SCHEDULE_IN_MINUTES
        return False

    def _on_track(self, distance: float, **kwargs) -> OnTrackInstruction:
        return OnTrackInstruction(
            distance,
            self.settings.TRIP_INSTRUCTION_IMMEDIATE_RADIUS,
            self.settings.TRIP_INSTRUCTION_UPCOMING_RADIUS,
            **kwargs,
        )

    def _relative_direction(self, position: TravelerPosition, step: Step, distance: float) -> Optional[str]:
        # Close to the step the approach bearing is meaningless, use the planned direction.
        if step.bearing is None or step.relative_direction == "DEPART":
            return None
        if distance <= self.settings.TRIP_INSTRUCTION_IMMEDIATE_RADIUS:
            return None
        approach = calculate_bearing(position.coordinates, step.to_coordinates())
        return relative_direction_from_bearings(approach, step.bearing)
