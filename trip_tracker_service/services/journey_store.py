"""
Durable per-journey tracking state.

All writes go through a read-modify-write on a single journey so that two
updates for the same journey can not both observe an interaction as unsent.
"""
from datetime import datetime
import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from ..config.settings import Settings, get_settings
from ..exceptions import (
    ConcurrentModificationError,
    JourneyAlreadyActiveError,
    JourneyEndedError,
    JourneyNotFoundError,
)
from ..models.tracking import EndCondition, InteractionRecord, InteractionState, TrackedJourney, TrackedLocation

logger = logging.getLogger(__name__)

Mutation = Callable[[TrackedJourney], Any]


class JourneyStore:
    """Base store; subclasses provide loading and the atomic read-modify-write."""

    def create(self, journey: TrackedJourney) -> TrackedJourney:
        raise NotImplementedError

    def get(self, journey_id: str) -> TrackedJourney:
        raise NotImplementedError

    def find_active(self, trip_id: str) -> Optional[TrackedJourney]:
        raise NotImplementedError

    def _mutate(self, journey_id: str, fn: Mutation) -> Tuple[TrackedJourney, Any]:
        raise NotImplementedError

    def append_location(self, journey_id: str, location: TrackedLocation) -> TrackedJourney:
        def append(journey: TrackedJourney):
            if not journey.is_active:
                raise JourneyEndedError(f"Journey {journey_id} has already ended")
            journey.locations.append(location)

        journey, _ = self._mutate(journey_id, append)
        return journey

    def claim_interaction(self, journey_id: str, key: str, payload: Dict[str, Any]) -> bool:
        """
        Atomically mark an interaction as pending.

        Returns False if an entry already exists that blocks a new dispatch.
        """
        def claim(journey: TrackedJourney) -> bool:
            existing = journey.interactions.get(key)
            if existing is not None and existing.blocks_dispatch:
                return False
            journey.interactions[key] = InteractionRecord(state=InteractionState.PENDING, payload=payload)
            return True

        _, claimed = self._mutate(journey_id, claim)
        return claimed

    def transition_interaction(
        self,
        journey_id: str,
        key: str,
        expected: InteractionState,
        record: InteractionRecord,
    ) -> bool:
        """Replace the entry only if it is currently in the expected state."""
        def transition(journey: TrackedJourney) -> bool:
            existing = journey.interactions.get(key)
            if existing is None or existing.state != expected:
                return False
            journey.interactions[key] = record
            return True

        _, changed = self._mutate(journey_id, transition)
        return changed

    def set_interaction(self, journey_id: str, key: str, record: InteractionRecord) -> TrackedJourney:
        def put(journey: TrackedJourney):
            journey.interactions[key] = record

        journey, _ = self._mutate(journey_id, put)
        return journey

    def end(self, journey_id: str, end_condition: EndCondition, end_time: datetime) -> TrackedJourney:
        def finish(journey: TrackedJourney):
            if not journey.is_active:
                raise JourneyEndedError(f"Journey {journey_id} has already ended")
            journey.end_condition = end_condition
            journey.end_time = end_time
            journey.total_deviation = journey.compute_total_deviation()

        journey, _ = self._mutate(journey_id, finish)
        logger.info(f"Journey {journey_id} ended: {end_condition.value}")
        return journey


class InMemoryJourneyStore(JourneyStore):
    def __init__(self):
        self._journeys: Dict[str, TrackedJourney] = {}
        self._lock = threading.Lock()

    def create(self, journey: TrackedJourney) -> TrackedJourney:
        with self._lock:
            for existing in self._journeys.values():
                if existing.trip_id == journey.trip_id and existing.is_active:
                    raise JourneyAlreadyActiveError(
                        f"A journey of trip {journey.trip_id} has already been started. End it before starting another."
                    )
            self._journeys[journey.id] = journey.model_copy(deep=True)
        return journey

    def get(self, journey_id: str) -> TrackedJourney:
        with self._lock:
            journey = self._journeys.get(journey_id)
            if journey is None:
                raise JourneyNotFoundError(f"No journey with id {journey_id}")
            return journey.model_copy(deep=True)

    def find_active(self, trip_id: str) -> Optional[TrackedJourney]:
        with self._lock:
            for journey in self._journeys.values():
                if journey.trip_id == trip_id and journey.is_active:
                    return journey.model_copy(deep=True)
        return None

    def _mutate(self, journey_id: str, fn: Mutation) -> Tuple[TrackedJourney, Any]:
        with self._lock:
            stored = self._journeys.get(journey_id)
            if stored is None:
                raise JourneyNotFoundError(f"No journey with id {journey_id}")
            journey = stored.model_copy(deep=True)
            result = fn(journey)
            journey.version += 1
            self._journeys[journey_id] = journey
            return journey.model_copy(deep=True), result


class RedisJourneyStore(JourneyStore):
    """Journeys stored as JSON documents, written with WATCH/MULTI transactions."""

    MAX_RETRIES = 5

    def __init__(self, client: Optional[redis.Redis] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client = client or redis.Redis.from_url(self.settings.REDIS_URL, decode_responses=True)
        self.prefix = self.settings.JOURNEY_KEY_PREFIX

    def _journey_key(self, journey_id: str) -> str:
        return f"{self.prefix}:{journey_id}"

    def _active_key(self, trip_id: str) -> str:
        return f"{self.prefix}:active:{trip_id}"

    def create(self, journey: TrackedJourney) -> TrackedJourney:
        # The active index is claimed first so only one start per trip can win.
        if not self.client.set(self._active_key(journey.trip_id), journey.id, nx=True):
            raise JourneyAlreadyActiveError(
                f"A journey of trip {journey.trip_id} has already been started. End it before starting another."
            )
        self.client.set(self._journey_key(journey.id), journey.model_dump_json())
        return journey

    def get(self, journey_id: str) -> TrackedJourney:
        raw = self.client.get(self._journey_key(journey_id))
        if raw is None:
            raise JourneyNotFoundError(f"No journey with id {journey_id}")
        return TrackedJourney.model_validate_json(raw)

    def find_active(self, trip_id: str) -> Optional[TrackedJourney]:
        journey_id = self.client.get(self._active_key(trip_id))
        if journey_id is None:
            return None
        try:
            journey = self.get(journey_id)
        except JourneyNotFoundError:
            logger.warning(f"Active index for trip {trip_id} points to missing journey {journey_id}")
            return None
        return journey if journey.is_active else None

    def _mutate(self, journey_id: str, fn: Mutation) -> Tuple[TrackedJourney, Any]:
        key = self._journey_key(journey_id)
        with self.client.pipeline() as pipe:
            for attempt in range(self.MAX_RETRIES):
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None:
                        raise JourneyNotFoundError(f"No journey with id {journey_id}")
                    journey = TrackedJourney.model_validate_json(raw)
                    result = fn(journey)
                    journey.version += 1
                    pipe.multi()
                    pipe.set(key, journey.model_dump_json())
                    if not journey.is_active:
                        pipe.delete(self._active_key(journey.trip_id))
                    pipe.execute()
                    return journey, result
                except redis.WatchError:
                    logger.debug(f"Journey {journey_id} changed during update, retry {attempt + 1}")
                finally:
                    pipe.reset()
        raise ConcurrentModificationError(
            f"Journey {journey_id} kept changing, gave up after {self.MAX_RETRIES} attempts"
        )
