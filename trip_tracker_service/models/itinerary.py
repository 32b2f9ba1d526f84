from datetime import datetime, timedelta
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import Coordinates, utc


class OtpModel(BaseModel):
    """Read-only model of planner output, accepting the planner's camelCase keys."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Place(OtpModel):
    """A named location; a transit stop when stop_id is present."""
    name: Optional[str] = Field(None, description="Place name")
    lat: float = Field(..., description="Latitude")
    lon: float = Field(..., description="Longitude")
    stop_id: Optional[str] = Field(None, alias="stopId", description="Agency-prefixed stop id")

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


class Step(OtpModel):
    """A single maneuver within a walk leg."""
    distance: float = Field(0.0, description="Step length in meters")
    relative_direction: Optional[str] = Field(None, alias="relativeDirection")
    absolute_direction: Optional[str] = Field(None, alias="absoluteDirection")
    street_name: str = Field(..., alias="streetName")
    lat: float = Field(..., description="Latitude of the maneuver")
    lon: float = Field(..., description="Longitude of the maneuver")
    bearing: Optional[float] = Field(None, description="Heading in degrees after the maneuver")

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


class LegGeometry(OtpModel):
    points: str = Field(..., description="Encoded polyline, precision 5")
    length: Optional[int] = Field(None, description="Number of encoded points")


class Leg(OtpModel):
    mode: str = Field(..., description="Leg mode, e.g. WALK or BUS")
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    duration: Optional[float] = Field(None, description="Leg duration in seconds")
    departure_delay: int = Field(0, alias="departureDelay", description="Realtime delay in seconds")
    transit_leg: bool = Field(False, alias="transitLeg")
    from_place: Place = Field(..., alias="from")
    to_place: Place = Field(..., alias="to")
    leg_geometry: Optional[LegGeometry] = Field(None, alias="legGeometry")
    steps: List[Step] = Field(default_factory=list)
    intermediate_stops: List[Place] = Field(default_factory=list, alias="intermediateStops")
    agency_id: Optional[str] = Field(None, alias="agencyId")
    route_id: Optional[str] = Field(None, alias="routeId")
    route_short_name: Optional[str] = Field(None, alias="routeShortName")
    trip_id: Optional[str] = Field(None, alias="tripId")

    @field_validator("steps", "intermediate_stops", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("start_time", "end_time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return utc(value)

    @property
    def total_duration(self) -> float:
        """Leg duration in seconds."""
        if self.duration is not None:
            return float(self.duration)
        return (self.end_time - self.start_time).total_seconds()

    @property
    def scheduled_start_time(self) -> datetime:
        return self.start_time - timedelta(seconds=self.departure_delay)

    @property
    def is_bus_leg(self) -> bool:
        return self.transit_leg and self.mode.upper() == "BUS"

    @property
    def is_walk_leg(self) -> bool:
        return self.mode.upper() == "WALK"


class Itinerary(OtpModel):
    legs: List[Leg] = Field(default_factory=list)

    def next_leg(self, leg: Leg) -> Optional[Leg]:
        """The leg following the given one, if any."""
        for i, candidate in enumerate(self.legs):
            if candidate is leg:
                return self.legs[i + 1] if i + 1 < len(self.legs) else None
        return None


def remove_agency_prefix(gtfs_id: Optional[str]) -> Optional[str]:
    """Strip the 'Agency:' prefix from an id such as 'GwinnettCountyTransit:360'."""
    if gtfs_id is None:
        return None
    return gtfs_id.split(":", 1)[1] if ":" in gtfs_id else gtfs_id
