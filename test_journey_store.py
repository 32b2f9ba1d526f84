import unittest
from unittest.mock import MagicMock, call

import redis

from trip_tracker_service.exceptions import (
    ConcurrentModificationError,
    JourneyAlreadyActiveError,
    JourneyEndedError,
    JourneyNotFoundError,
)
from trip_tracker_service.models.tracking import (
    EndCondition,
    InteractionRecord,
    InteractionState,
    TrackedJourney,
    TrackedLocation,
    TripStatus,
)
from trip_tracker_service.services.journey_store import InMemoryJourneyStore, RedisJourneyStore
from trip_fixtures import T0, make_settings


def location(deviation=0.0, status=TripStatus.ON_SCHEDULE):
    return TrackedLocation(timestamp=T0, lat=33.78, lon=-84.4, trip_status=status, deviation_meters=deviation)


class TestInMemoryJourneyStore(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryJourneyStore()
        self.journey = self.store.create(TrackedJourney(trip_id="trip-1", start_time=T0))

    def test_find_active(self):
        self.assertEqual(self.store.find_active("trip-1").id, self.journey.id)
        self.assertIsNone(self.store.find_active("trip-2"))

    def test_one_active_journey_per_trip(self):
        with self.assertRaises(JourneyAlreadyActiveError):
            self.store.create(TrackedJourney(trip_id="trip-1", start_time=T0))
        self.store.end(self.journey.id, EndCondition.TERMINATED_BY_USER, T0)
        second = self.store.create(TrackedJourney(trip_id="trip-1", start_time=T0))
        self.assertEqual(self.store.find_active("trip-1").id, second.id)

    def test_unknown_journey(self):
        with self.assertRaises(JourneyNotFoundError):
            self.store.get("missing")
        with self.assertRaises(JourneyNotFoundError):
            self.store.append_location("missing", location())

    def test_append_increments_version(self):
        self.store.append_location(self.journey.id, location())
        journey = self.store.append_location(self.journey.id, location(12.5))
        self.assertEqual(len(journey.locations), 2)
        self.assertEqual(journey.version, 2)
        self.assertEqual(self.store.get(self.journey.id).last_location().deviation_meters, 12.5)

    def test_returned_copies_are_detached(self):
        journey = self.store.get(self.journey.id)
        journey.locations.append(location())
        self.assertEqual(self.store.get(self.journey.id).locations, [])

    def test_end(self):
        self.store.append_location(self.journey.id, location(10.0))
        self.store.append_location(self.journey.id, location(30.0, TripStatus.DEVIATED))
        ended = self.store.end(self.journey.id, EndCondition.TERMINATED_BY_USER, T0)

        self.assertFalse(ended.is_active)
        self.assertEqual(ended.total_deviation, 40.0)
        self.assertEqual(ended.end_condition, EndCondition.TERMINATED_BY_USER)
        self.assertIsNone(self.store.find_active("trip-1"))

        with self.assertRaises(JourneyEndedError):
            self.store.append_location(self.journey.id, location())
        with self.assertRaises(JourneyEndedError):
            self.store.end(self.journey.id, EndCondition.FORCIBLY_TERMINATED, T0)

    def test_claim_interaction_once(self):
        self.assertTrue(self.store.claim_interaction(self.journey.id, "route", {"msg_type": 1}))
        self.assertFalse(self.store.claim_interaction(self.journey.id, "route", {"msg_type": 1}))
        record = self.store.get(self.journey.id).interactions["route"]
        self.assertEqual(record.state, InteractionState.PENDING)

    def test_failed_interaction_blocks_claim(self):
        self.store.set_interaction(self.journey.id, "route", InteractionRecord(state=InteractionState.FAILED))
        self.assertFalse(self.store.claim_interaction(self.journey.id, "route", {}))

    def test_cancelled_interaction_can_be_claimed(self):
        self.store.set_interaction(self.journey.id, "route", InteractionRecord(state=InteractionState.CANCELLED))
        self.assertTrue(self.store.claim_interaction(self.journey.id, "route", {}))

    def test_transition_requires_expected_state(self):
        self.store.set_interaction(self.journey.id, "route", InteractionRecord(state=InteractionState.SENT))
        cancelled = InteractionRecord(state=InteractionState.CANCELLED)
        self.assertTrue(self.store.transition_interaction(self.journey.id, "route", InteractionState.SENT, cancelled))
        self.assertFalse(self.store.transition_interaction(self.journey.id, "route", InteractionState.SENT, cancelled))
        self.assertFalse(self.store.transition_interaction(self.journey.id, "other", InteractionState.SENT, cancelled))


class TestRedisJourneyStore(unittest.TestCase):
    def setUp(self):
        self.journey = TrackedJourney(id="j-1", trip_id="trip-1", start_time=T0)
        self.client = MagicMock()
        self.pipe = MagicMock()
        self.client.pipeline.return_value.__enter__.return_value = self.pipe
        self.pipe.get.return_value = self.journey.model_dump_json()
        self.store = RedisJourneyStore(self.client, make_settings())

    def test_create_claims_active_index_first(self):
        self.client.set.return_value = True
        self.store.create(self.journey)
        self.assertEqual(self.client.set.call_args_list[0], call("tracked_journey:active:trip-1", "j-1", nx=True))
        self.client.set.assert_called_with("tracked_journey:j-1", self.journey.model_dump_json())

    def test_create_rejects_second_active_journey(self):
        self.client.set.return_value = None
        with self.assertRaises(JourneyAlreadyActiveError):
            self.store.create(self.journey)
        self.assertEqual(self.client.set.call_count, 1)

    def test_get(self):
        self.client.get.return_value = self.journey.model_dump_json()
        self.assertEqual(self.store.get("j-1").trip_id, "trip-1")
        self.client.get.assert_called_with("tracked_journey:j-1")

    def test_get_missing(self):
        self.client.get.return_value = None
        with self.assertRaises(JourneyNotFoundError):
            self.store.get("j-1")

    def test_find_active(self):
        self.client.get.side_effect = ["j-1", self.journey.model_dump_json()]
        self.assertEqual(self.store.find_active("trip-1").id, "j-1")

    def test_append_watches_and_writes(self):
        journey = self.store.append_location("j-1", location())
        self.pipe.watch.assert_called_with("tracked_journey:j-1")
        self.pipe.multi.assert_called_once()
        self.assertEqual(journey.version, 1)
        self.assertEqual(len(journey.locations), 1)

    def test_retries_on_concurrent_write(self):
        self.pipe.execute.side_effect = [redis.WatchError(), None]
        journey = self.store.append_location("j-1", location())
        self.assertEqual(self.pipe.execute.call_count, 2)
        self.assertEqual(len(journey.locations), 1)

    def test_gives_up_after_max_retries(self):
        self.pipe.execute.side_effect = redis.WatchError()
        with self.assertRaises(ConcurrentModificationError):
            self.store.append_location("j-1", location())
        self.assertEqual(self.pipe.execute.call_count, RedisJourneyStore.MAX_RETRIES)

    def test_end_removes_active_index(self):
        self.store.end("j-1", EndCondition.TRIP_COMPLETED, T0)
        self.pipe.delete.assert_called_once_with("tracked_journey:active:trip-1")

    def test_missing_journey(self):
        self.pipe.get.return_value = None
        with self.assertRaises(JourneyNotFoundError):
            self.store.append_location("j-1", location())


if __name__ == '__main__':
    unittest.main()
