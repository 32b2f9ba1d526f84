"""Traveler-facing instructions produced during trip tracking."""
from datetime import datetime
import math
from typing import Optional
from zoneinfo import ZoneInfo

from .itinerary import Leg, Step

IMMEDIATE_PREFIX = "IMMEDIATE: "
UPCOMING_PREFIX = "UPCOMING: "
ARRIVED_PREFIX = "ARRIVED: "


def readable_minutes(minutes: int) -> str:
    """' 1 minute', ' N minutes' or '' when there is nothing to wait for."""
    if minutes == 1:
        return f" {minutes} minute"
    if minutes > 1:
        return f" {minutes} minutes"
    return ""


def format_short_time(value: datetime, timezone: str) -> str:
    """Format as e.g. '5:45 PM' in the given timezone."""
    return value.astimezone(ZoneInfo(timezone)).strftime("%I:%M %p").lstrip("0")


class TripInstruction:
    """Base instruction; subclasses render their own text."""

    def __init__(self, distance: float = 0.0, location_name: Optional[str] = None):
        self.distance = distance
        self.location_name = location_name

    def build(self) -> str:
        raise NotImplementedError


class OnTrackInstruction(TripInstruction):
    """Turn-by-turn guidance towards a step or the leg's destination."""

    def __init__(
        self,
        distance: float,
        immediate_radius: float,
        upcoming_radius: float,
        step: Optional[Step] = None,
        relative_direction: Optional[str] = None,
        location_name: Optional[str] = None,
    ):
        super().__init__(distance, location_name)
        self.step = step
        self.relative_direction = relative_direction
        self.upcoming_radius = upcoming_radius
        is_destination = step is None
        if distance <= immediate_radius:
            self.prefix = ARRIVED_PREFIX if is_destination else IMMEDIATE_PREFIX
        elif distance <= upcoming_radius:
            self.prefix = UPCOMING_PREFIX
        else:
            self.prefix = None

    def build(self) -> Optional[str]:
        if self.prefix is None:
            return None
        if self.step is not None:
            direction = self.relative_direction or self.step.relative_direction
            if direction == "DEPART":
                direction = f"Head {self.step.absolute_direction}"
            return f"{self.prefix}{direction} on {self.step.street_name}"
        if self.location_name is not None:
            return f"{self.prefix}{self.location_name}"
        return None


class DeviatedInstruction(TripInstruction):
    def build(self) -> str:
        return f"Head to {self.location_name}"


class GetOffHereInstruction(TripInstruction):
    def build(self) -> str:
        return f"Get off here ({self.location_name})"


class GetOffNextStopInstruction(TripInstruction):
    def build(self) -> str:
        return f"Get off at next stop ({self.location_name})"


class GetOffSoonInstruction(TripInstruction):
    def build(self) -> str:
        return f"Your stop is coming up ({self.location_name})"


class TransitLegSummaryInstruction(TripInstruction):
    def __init__(self, leg: Leg):
        super().__init__(0.0, leg.to_place.name)
        self.leg = leg

    def build(self) -> str:
        minutes = math.floor(self.leg.total_duration / 60)
        stops = len(self.leg.intermediate_stops) + 1
        return f"Ride {minutes} min / {stops} stops to {self.leg.to_place.name}"


class WaitForTransitInstruction(TripInstruction):
    """Emitted when a traveler reaches the stop where a transit leg begins."""

    def __init__(self, leg: Leg, current_time: datetime, timezone: str):
        super().__init__(0.0, leg.from_place.name)
        self.leg = leg
        self.current_time = current_time
        self.timezone = timezone

    def build(self) -> str:
        scheduled = self.leg.scheduled_start_time
        wait_minutes = int((scheduled - self.current_time).total_seconds() // 60)
        delay_minutes = int(self.leg.departure_delay / 60)
        if abs(delay_minutes) <= 1:
            arrival_info = ", on time"
        else:
            delay_info = "late" if delay_minutes > 0 else "early"
            arrival_info = f" now{readable_minutes(abs(delay_minutes))} {delay_info}"
        return (
            f"Wait{readable_minutes(wait_minutes)} for your bus, "
            f"route {self.leg.route_short_name}, "
            f"scheduled at {format_short_time(scheduled, self.timezone)}{arrival_info}"
        )
