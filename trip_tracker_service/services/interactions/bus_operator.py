"""Notify a bus operator that a traveler will board at a given stop."""
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

import requests

from ...config.settings import Settings
from ...models.itinerary import Leg, remove_agency_prefix
from ...models.mobility import get_mobility_codes
from ...models.position import TravelerPosition
from .base import HttpInteraction, InteractionResult

logger = logging.getLogger(__name__)

MSG_TYPE_NOTIFY = 1
MSG_TYPE_CANCEL = 0


def format_api_timestamp(value: datetime) -> str:
    """UTC timestamp with milliseconds, e.g. 2024-05-01T13:45:07.120Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class BusOperatorHandler(HttpInteraction):
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        super().__init__(settings, session)
        self.url = self.settings.BUS_OPERATOR_NOTIFIER_API_URL
        self.api_key = self.settings.BUS_OPERATOR_NOTIFIER_API_KEY

    def get_headers(self) -> Dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.api_key or "",
            "Content-Type": "application/json",
        }

    def build_message(self, position: TravelerPosition, leg: Leg) -> Dict[str, Any]:
        """Body of a notify request for boarding the given bus leg."""
        arrival = leg.scheduled_start_time.astimezone(ZoneInfo(self.settings.OTP_TIMEZONE))
        return {
            "timestamp": format_api_timestamp(position.current_time),
            "agency_id": remove_agency_prefix(leg.agency_id),
            "from_route_id": remove_agency_prefix(leg.route_id),
            "from_trip_id": remove_agency_prefix(leg.trip_id),
            "from_stop_id": remove_agency_prefix(leg.from_place.stop_id),
            "to_stop_id": remove_agency_prefix(leg.to_place.stop_id),
            "from_arrival_time": arrival.strftime("%H:%M:%S"),
            "msg_type": MSG_TYPE_NOTIFY,
            "mobility_codes": get_mobility_codes(position.mobility_mode),
            "trusted_companion": False,
        }

    @staticmethod
    def cancel_message(message: Dict[str, Any]) -> Dict[str, Any]:
        cancel = dict(message)
        cancel["msg_type"] = MSG_TYPE_CANCEL
        return cancel

    def send(self, key: str, message: Dict[str, Any]) -> InteractionResult:
        if not self.url:
            logger.error("Not notifying bus operator: notifier API url is not configured.")
            return InteractionResult(key=key, sent=False, payload=message, error="not configured")
        result = self.post(key, self.url, self.get_headers(), message)
        if result.sent:
            action = "Cancelled" if message.get("msg_type") == MSG_TYPE_CANCEL else "Sent"
            logger.info(f"{action} bus operator notification for route {message.get('from_route_id')}")
        return result
