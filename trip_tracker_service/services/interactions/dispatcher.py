"""
Match a traveler's position against the configured rule tables and trigger
each external interaction at most once per journey.
"""
import logging
from typing import Any, Callable, Dict, Optional

from ...config.settings import Settings, get_settings
from ...exceptions import InteractionStateError, TripTrackingError
from ...models.actions import AgencyAction, HandlerKind, SegmentAction, TripActionsConfig
from ...models.base import Coordinates
from ...models.itinerary import Leg, Step, remove_agency_prefix
from ...models.position import TravelerPosition
from ...models.tracking import InteractionRecord, InteractionState, TripStatus
from ...utils.geometry import get_distance
from ..journey_store import JourneyStore
from .base import InteractionResult
from .bus_operator import BusOperatorHandler
from .registry import build_registry

logger = logging.getLogger(__name__)


def segment_key(action: SegmentAction) -> str:
    return f"segment:{action.id}"


class InteractionDispatcher:
    def __init__(
        self,
        store: JourneyStore,
        config: TripActionsConfig,
        registry: Optional[Dict[HandlerKind, object]] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.config = config
        self.registry = registry if registry is not None else build_registry(self.settings)

    def reload(self, config: TripActionsConfig) -> None:
        """Swap the rule tables for a newly loaded set."""
        self.config = config
        logger.info(
            f"Reloaded trip actions: {len(config.segment_actions)} segment, {len(config.agency_actions)} agency"
        )

    # Matching

    def segment_matches_action(self, start: Coordinates, end: Coordinates, action: SegmentAction) -> bool:
        """Both endpoints within the match radius, in either direction."""
        radius = self.settings.SEGMENT_ACTION_MATCH_RADIUS
        action_start = action.start.to_coordinates()
        action_end = action.end.to_coordinates()
        return (
            get_distance(start, action_start) <= radius and get_distance(end, action_end) <= radius
        ) or (
            get_distance(start, action_end) <= radius and get_distance(end, action_start) <= radius
        )

    def get_segment_action(self, start: Coordinates, end: Coordinates) -> Optional[SegmentAction]:
        for action in self.config.segment_actions:
            if self.segment_matches_action(start, end, action):
                return action
        return None

    def get_agency_action(self, leg: Optional[Leg]) -> Optional[AgencyAction]:
        if leg is None:
            return None
        agency_id = remove_agency_prefix(leg.agency_id)
        if agency_id is None:
            return None
        for action in self.config.agency_actions:
            if action.agency_id.lower() == agency_id.lower() and action.route_qualifies(leg.route_id):
                return action
        return None

    # Segment interactions

    def handle_segment_action(
        self,
        journey_id: str,
        step: Step,
        step_after: Optional[Step],
        position: TravelerPosition,
    ) -> Optional[InteractionResult]:
        """Trigger the interaction configured for the step -> step_after segment, once."""
        if step_after is None:
            return None
        action = self.get_segment_action(step.to_coordinates(), step_after.to_coordinates())
        if action is None:
            return None

        handler = self.registry.get(action.handler)
        if handler is None:
            logger.error(f"No handler registered for {action.handler.value}, rule {action.id}")
            return None

        key = segment_key(action)
        if not self.store.claim_interaction(journey_id, key, {"rule_id": action.id}):
            logger.info(f"Interaction {key} already triggered for journey {journey_id}")
            return None

        result = self._invoke(key, {"rule_id": action.id}, handler.trigger, key, action, position)
        self._record(journey_id, key, result)
        return result

    # Bus operator notifications

    def handle_send_bus_notification(
        self,
        journey_id: str,
        trip_status: TripStatus,
        position: TravelerPosition,
    ) -> Optional[InteractionResult]:
        leg = position.next_leg
        if leg is None or not leg.is_bus_leg or leg.route_id is None:
            return None
        if trip_status not in (TripStatus.ON_SCHEDULE, TripStatus.AHEAD_OF_SCHEDULE):
            return None
        action = self.get_agency_action(leg)
        if action is None:
            return None
        handler: BusOperatorHandler = self.registry.get(action.handler)
        if handler is None:
            logger.error(f"No handler registered for {action.handler.value}, agency {action.agency_id}")
            return None

        key = leg.route_id
        message = handler.build_message(position, leg)
        # Claimed before the call so a concurrent update can not send it too.
        if not self.store.claim_interaction(journey_id, key, message):
            logger.info(f"Bus operator already notified for route {key} on journey {journey_id}")
            return None

        result = self._invoke(key, message, handler.send, key, message)
        self._record(journey_id, key, result)
        return result

    def has_sent_notification(self, journey_id: str, route_id: Optional[str]) -> bool:
        if route_id is None:
            return False
        record = self.store.get(journey_id).interactions.get(route_id)
        return record is not None and record.state == InteractionState.SENT

    def cancel_bus_notification(self, journey_id: str, leg: Leg) -> InteractionResult:
        """
        Cancel the notification previously sent for the leg's route.

        Raises InteractionStateError when nothing was sent for the route.
        """
        key = leg.route_id
        record = self.store.get(journey_id).interactions.get(key) if key else None
        if record is None or record.state != InteractionState.SENT:
            raise InteractionStateError(f"No sent bus notification to cancel for route {key} on journey {journey_id}")

        action = self.get_agency_action(leg)
        handler: Optional[BusOperatorHandler] = self.registry.get(action.handler) if action else None
        if handler is None:
            raise InteractionStateError(f"No bus operator handler configured for route {key}")

        cancel = handler.cancel_message(record.payload)
        pending_cancel = InteractionRecord(state=InteractionState.CANCELLED, payload=cancel)
        if not self.store.transition_interaction(journey_id, key, InteractionState.SENT, pending_cancel):
            raise InteractionStateError(f"Bus notification for route {key} was cancelled concurrently")

        result = self._invoke(key, cancel, handler.send, key, cancel)
        if not result.sent:
            # The operator still expects the traveler.
            self.store.set_interaction(journey_id, key, record)
        return result

    def cancel_all_bus_notifications(self, journey_id: str, itinerary_legs) -> int:
        """Cancel every sent notification for the itinerary's bus legs; returns how many were cancelled."""
        cancelled = 0
        for leg in itinerary_legs:
            if leg.is_bus_leg and self.has_sent_notification(journey_id, leg.route_id):
                if self.cancel_bus_notification(journey_id, leg).sent:
                    cancelled += 1
        return cancelled

    def _invoke(self, key: str, payload: Dict[str, Any], call: Callable[..., InteractionResult], *args) -> InteractionResult:
        """Run a handler call; any failure becomes an unsent result."""
        try:
            return call(*args)
        except Exception as e:
            logger.exception(f"Interaction {key} raised: {e}")
            return InteractionResult(key=key, sent=False, payload=payload, error=str(e))

    def _record(self, journey_id: str, key: str, result: InteractionResult) -> None:
        state = InteractionState.SENT if result.sent else InteractionState.FAILED
        try:
            self.store.set_interaction(journey_id, key, InteractionRecord(state=state, payload=result.payload))
        except TripTrackingError as e:
            logger.error(f"Could not record interaction {key} as {state.value} for journey {journey_id}: {e}")
