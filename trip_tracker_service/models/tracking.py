from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid
from pydantic import BaseModel, ConfigDict, Field

from .itinerary import Itinerary
from .mobility import MobilityProfile


class TripStatus(str, Enum):
    AHEAD_OF_SCHEDULE = "AHEAD_OF_SCHEDULE"
    ON_SCHEDULE = "ON_SCHEDULE"
    BEHIND_SCHEDULE = "BEHIND_SCHEDULE"
    DEVIATED = "DEVIATED"


class EndCondition(str, Enum):
    """Reasons a journey stops being tracked."""
    TERMINATED_BY_USER = "Tracking terminated by user."
    FORCIBLY_TERMINATED = "Tracking forcibly terminated."
    TRIP_COMPLETED = "Trip completed."


class InteractionState(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InteractionRecord(BaseModel):
    """Idempotency entry for one route or segment key."""
    state: InteractionState = Field(..., description="Delivery state of the last payload")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Last payload sent or attempted")
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def blocks_dispatch(self) -> bool:
        return self.state != InteractionState.CANCELLED


class TrackedLocation(BaseModel):
    """A GPS fix and the status computed for it. Never modified once recorded."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Time the fix was taken")
    lat: float = Field(..., description="Latitude")
    lon: float = Field(..., description="Longitude")
    speed: Optional[float] = Field(None, description="Speed in meters per second")
    trip_status: TripStatus = Field(..., description="Schedule adherence at this fix")
    deviation_meters: float = Field(0.0, description="Distance from the planned path")


class TrackedJourney(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    trip_id: str = Field(..., description="Monitored trip being tracked")
    start_time: datetime = Field(default_factory=utc_now)
    locations: List[TrackedLocation] = Field(default_factory=list)
    interactions: Dict[str, InteractionRecord] = Field(default_factory=dict)
    end_condition: Optional[EndCondition] = None
    end_time: Optional[datetime] = None
    total_deviation: Optional[float] = None
    version: int = Field(0, description="Incremented on every write, for optimistic concurrency")

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def is_first_update(self) -> bool:
        return len(self.locations) == 0

    def last_location(self) -> Optional[TrackedLocation]:
        return self.locations[-1] if self.locations else None

    def compute_total_deviation(self) -> float:
        return sum(location.deviation_meters for location in self.locations)


class MonitoredTrip(BaseModel):
    """The planned trip a traveler has asked to be tracked."""
    trip_id: str
    itinerary: Itinerary
    mobility_profile: MobilityProfile = Field(default_factory=MobilityProfile)


class InteractionSummary(BaseModel):
    key: str
    sent: bool
    error: Optional[str] = None


class StartTrackingResponse(BaseModel):
    journey_id: str
    trip_status: TripStatus
    instruction: Optional[str] = None
    frequency_seconds: int = Field(..., description="How often the caller should report its position")


class UpdateTrackingResponse(BaseModel):
    trip_status: TripStatus
    instruction: Optional[str] = None
    deviation_meters: float = 0.0
    interactions: List[InteractionSummary] = Field(default_factory=list)


class EndTrackingResponse(BaseModel):
    journey_id: str
    end_condition: EndCondition
    total_deviation: float = 0.0
    cancelled_notifications: int = 0
