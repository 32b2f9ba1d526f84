"""Pedestrian calls to signalized intersections."""
import logging
import threading
from typing import Dict, Optional

import requests

from ...config.settings import Settings
from ...models.actions import SegmentAction
from ...models.mobility import needs_extended_phase
from ...models.position import TravelerPosition
from .base import HttpInteraction, InteractionResult

logger = logging.getLogger(__name__)


class TrafficSignalHandler(HttpInteraction):
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        super().__init__(settings, session)
        self.host = self.settings.PED_SIGNAL_API_HOST
        self.path = self.settings.PED_SIGNAL_API_PATH
        self.key = self.settings.PED_SIGNAL_API_KEY
        # One pedestrian call in flight per process.
        self._availability = threading.Lock()

    @staticmethod
    def parse_rule_id(rule_id: str):
        """Split a 'signalId:crossingId' rule id."""
        signal_id, _, crossing_id = rule_id.partition(":")
        return signal_id, crossing_id

    def get_url(self, signal_id: str, crossing_id: str, extended: bool) -> str:
        url = self.host + self.path.format(signal_id=signal_id, crossing_id=crossing_id)
        return url + "?extended=true" if extended else url

    def get_headers(self) -> Dict[str, str]:
        return {"X-API-KEY": self.key}

    def trigger(self, key: str, action: SegmentAction, position: TravelerPosition) -> InteractionResult:
        signal_id, crossing_id = self.parse_rule_id(action.id)
        extended = needs_extended_phase(position.mobility_mode)
        payload = {"signal_id": signal_id, "crossing_id": crossing_id, "extended": extended}

        if not self.host or not self.key:
            logger.error("Not triggering pedestrian call: host and key are not configured.")
            return InteractionResult(key=key, sent=False, payload=payload, error="not configured")

        if not self._availability.acquire(blocking=False):
            logger.info(f"Pedestrian call already in progress, skipping {action.id}")
            return InteractionResult(key=key, sent=False, payload=payload, error="busy")
        try:
            url = self.get_url(signal_id, crossing_id, extended)
            result = self.post(key, url, self.get_headers())
            result.payload = payload
            if result.sent:
                logger.info(f"Triggered pedestrian call {url}")
            return result
        finally:
            self._availability.release()
