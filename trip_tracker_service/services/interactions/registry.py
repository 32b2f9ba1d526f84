from typing import Dict, Optional

import requests

from ...config.settings import Settings, get_settings
from ...models.actions import HandlerKind
from .bus_operator import BusOperatorHandler
from .traffic_signal import TrafficSignalHandler


def build_registry(
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> Dict[HandlerKind, object]:
    """Create one handler per kind, sharing a single HTTP session."""
    settings = settings or get_settings()
    session = session or requests.Session()
    return {
        HandlerKind.TRAFFIC_SIGNAL: TrafficSignalHandler(settings, session),
        HandlerKind.BUS_OPERATOR: BusOperatorHandler(settings, session),
    }
