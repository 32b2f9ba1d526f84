import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from ..exceptions import TripNotFoundError
from ..models.itinerary import Itinerary
from ..models.mobility import MobilityProfile
from ..models.tracking import MonitoredTrip

logger = logging.getLogger(__name__)


class TripProvider:
    """Source of the monitored trips that can be tracked."""

    def get_monitored_trip(self, trip_id: str) -> MonitoredTrip:
        raise NotImplementedError


class InMemoryTripProvider(TripProvider):
    def __init__(self, trips: Optional[Dict[str, MonitoredTrip]] = None):
        self.trips: Dict[str, MonitoredTrip] = dict(trips or {})

    def add(self, trip: MonitoredTrip) -> None:
        self.trips[trip.trip_id] = trip

    def get_monitored_trip(self, trip_id: str) -> MonitoredTrip:
        trip = self.trips.get(trip_id)
        if trip is None:
            raise TripNotFoundError(f"No monitored trip with id {trip_id}")
        return trip


def load_itinerary(path: Union[str, Path]) -> Itinerary:
    """Read a planner itinerary from a JSON file, unwrapping {"itinerary": ...} if present."""
    with open(path, 'r') as f:
        data = json.load(f)
    if "itinerary" in data:
        data = data["itinerary"]
    itinerary = Itinerary.model_validate(data)
    logger.info(f"Loaded itinerary with {len(itinerary.legs)} legs from {path}")
    return itinerary


def load_mobility_profile(path: Union[str, Path]) -> MobilityProfile:
    with open(path, 'r') as f:
        return MobilityProfile.model_validate(json.load(f))
