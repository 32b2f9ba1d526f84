"""Static rule tables for in-trip interactions."""
from enum import Enum
import json
from pathlib import Path
import logging
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from .base import Coordinates

logger = logging.getLogger(__name__)


class HandlerKind(str, Enum):
    TRAFFIC_SIGNAL = "traffic_signal"
    BUS_OPERATOR = "bus_operator"


class RulePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


class SegmentAction(BaseModel):
    """Interaction triggered when a traveler's next segment matches start/end."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Rule id, e.g. 'signalId:crossingId' for traffic signals")
    start: RulePoint
    end: RulePoint
    handler: HandlerKind


class AgencyAction(BaseModel):
    """Interaction triggered when a traveler's next leg is run by the agency."""
    model_config = ConfigDict(frozen=True)

    agency_id: str
    handler: HandlerKind
    qualifying_routes: Optional[List[str]] = Field(
        None, description="Route ids that qualify; all routes when absent or empty"
    )

    def route_qualifies(self, route_id: Optional[str]) -> bool:
        if not self.qualifying_routes:
            return True
        return route_id in self.qualifying_routes


class TripActionsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    segment_actions: List[SegmentAction] = Field(default_factory=list)
    agency_actions: List[AgencyAction] = Field(default_factory=list)


def load_trip_actions(path: Union[str, Path]) -> TripActionsConfig:
    """Read the rule tables from a JSON file."""
    with open(path, 'r') as f:
        data = json.load(f)
    config = TripActionsConfig.model_validate(data)
    logger.info(
        f"Loaded {len(config.segment_actions)} segment actions and "
        f"{len(config.agency_actions)} agency actions from {path}"
    )
    return config
