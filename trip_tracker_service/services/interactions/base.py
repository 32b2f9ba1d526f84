from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Optional

import requests

from ...config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class InteractionResult:
    """Outcome of one outbound interaction call."""
    key: str
    sent: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    status_code: Optional[int] = None
    error: Optional[str] = None


class HttpInteraction:
    """Shared POST plumbing for handlers that call external APIs."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def post(self, key: str, url: str, headers: Dict[str, str], payload: Optional[Dict[str, Any]] = None) -> InteractionResult:
        """POST the payload; transport errors and non-2xx responses become an unsent result."""
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.settings.INTERACTION_HTTP_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(f"Interaction {key} failed calling {url}: {e}")
            return InteractionResult(key=key, sent=False, payload=payload or {}, error=str(e))

        if not 200 <= response.status_code < 300:
            logger.error(f"Error {response.status_code} from {url} for interaction {key}")
            return InteractionResult(
                key=key,
                sent=False,
                payload=payload or {},
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )
        return InteractionResult(key=key, sent=True, payload=payload or {}, status_code=response.status_code)
