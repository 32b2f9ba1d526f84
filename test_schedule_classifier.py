import unittest
from datetime import timedelta

from trip_tracker_service.exceptions import EmptyItineraryError
from trip_tracker_service.models.base import Coordinates
from trip_tracker_service.models.itinerary import Itinerary
from trip_tracker_service.models.tracking import TripStatus
from trip_tracker_service.services.schedule_classifier import ScheduleClassifier
from trip_fixtures import A, C, MID1, T0, coords, make_settings, walk_itinerary, walk_then_bus_itinerary


class TestScheduleClassifier(unittest.TestCase):
    def setUp(self):
        self.classifier = ScheduleClassifier(make_settings())
        self.itinerary = walk_itinerary()

    def test_on_schedule_at_start(self):
        result = self.classifier.classify(self.itinerary, coords(A), T0)
        self.assertEqual(result.status, TripStatus.ON_SCHEDULE)
        self.assertAlmostEqual(result.deviation, 0.0, places=6)
        self.assertAlmostEqual(result.delta_seconds, 0.0, places=6)

    def test_deviated_regardless_of_timing(self):
        off_route = Coordinates(lat=33.7809, lon=-84.399)  # 100m north of the street
        for offset in (0, 90, 300):
            result = self.classifier.classify(self.itinerary, off_route, T0 + timedelta(seconds=offset))
            self.assertEqual(result.status, TripStatus.DEVIATED)
            self.assertGreater(result.deviation, 50)

    def test_ahead_of_schedule(self):
        # MID1 is expected roughly 91 seconds into the leg
        result = self.classifier.classify(self.itinerary, coords(MID1), T0 + timedelta(seconds=10))
        self.assertEqual(result.status, TripStatus.AHEAD_OF_SCHEDULE)
        self.assertLess(result.delta_seconds, -60)

    def test_behind_schedule(self):
        result = self.classifier.classify(self.itinerary, coords(A), T0 + timedelta(seconds=200))
        self.assertEqual(result.status, TripStatus.BEHIND_SCHEDULE)
        self.assertAlmostEqual(result.delta_seconds, 200, places=3)

    def test_on_schedule_mid_leg(self):
        result = self.classifier.classify(self.itinerary, coords(MID1), T0 + timedelta(seconds=91))
        self.assertEqual(result.status, TripStatus.ON_SCHEDULE)
        self.assertEqual(result.projection.segment_index, 1)

    def test_before_trip_uses_nearest_leg(self):
        result = self.classifier.classify(self.itinerary, coords(A), T0 - timedelta(seconds=30))
        self.assertEqual(result.status, TripStatus.ON_SCHEDULE)
        self.assertIs(result.leg, self.itinerary.legs[0])

        result = self.classifier.classify(self.itinerary, coords(A), T0 - timedelta(minutes=10))
        self.assertEqual(result.status, TripStatus.AHEAD_OF_SCHEDULE)

    def test_after_trip_far_away_is_deviated(self):
        far_away = Coordinates(lat=33.80, lon=-84.30)
        result = self.classifier.classify(self.itinerary, far_away, T0 + timedelta(hours=2))
        self.assertEqual(result.status, TripStatus.DEVIATED)

    def test_after_trip_at_destination(self):
        result = self.classifier.classify(self.itinerary, coords(C), T0 + timedelta(seconds=430))
        self.assertEqual(result.status, TripStatus.ON_SCHEDULE)

    def test_active_leg_by_time(self):
        itinerary = walk_then_bus_itinerary()
        self.assertIs(self.classifier.get_active_leg(itinerary, T0), itinerary.legs[0])
        self.assertIsNone(self.classifier.get_active_leg(itinerary, T0 + timedelta(seconds=200)))
        self.assertIs(self.classifier.get_active_leg(itinerary, T0 + timedelta(seconds=300)), itinerary.legs[1])

    def test_classification_is_repeatable(self):
        now = T0 + timedelta(seconds=45)
        first = self.classifier.classify(self.itinerary, coords(MID1), now)
        second = self.classifier.classify(self.itinerary, coords(MID1), now)
        self.assertEqual(first.status, second.status)
        self.assertEqual(first.deviation, second.deviation)
        self.assertEqual(first.delta_seconds, second.delta_seconds)

    def test_empty_itinerary(self):
        with self.assertRaises(EmptyItineraryError):
            self.classifier.classify(Itinerary(legs=[]), coords(A), T0)


if __name__ == '__main__':
    unittest.main()
