import unittest

from trip_tracker_service.exceptions import PolylineDecodeError
from trip_tracker_service.models.itinerary import Leg
from trip_tracker_service.services.leg_segmenter import LegSegmenter, decode_polyline
from trip_fixtures import A, B, C, MID1, MID2, S5, bus_leg, coords, make_settings, step, walk_leg, walk_leg_data


class TestLegSegmenter(unittest.TestCase):
    def setUp(self):
        self.segmenter = LegSegmenter(make_settings())

    def test_time_is_allocated_over_whole_leg(self):
        segments = self.segmenter.create_segments(walk_leg(duration=400))
        self.assertEqual(len(segments), 4)
        self.assertAlmostEqual(sum(s.time_in_segment for s in segments), 400, places=6)
        self.assertAlmostEqual(segments[-1].cumulative_time, 400, places=6)

    def test_time_is_proportional_to_distance(self):
        segments = self.segmenter.create_segments(walk_leg(duration=400))
        total = segments[-1].cumulative_distance
        for segment in segments:
            self.assertAlmostEqual(segment.time_in_segment, 400 * segment.distance / total, places=6)

    def test_segments_are_continuous(self):
        segments = self.segmenter.create_segments(walk_leg())
        for current, following in zip(segments, segments[1:]):
            self.assertEqual(current.end, following.start)
        self.assertEqual(segments[0].start, coords(A))
        self.assertEqual(segments[-1].end, coords(C))

    def test_steps_are_segment_boundaries(self):
        segmented = self.segmenter.segment(walk_leg())
        self.assertEqual(segmented.segments[0].start_waypoint_index, 0)
        self.assertEqual(segmented.segments[2].start_waypoint_index, 1)
        self.assertEqual(segmented.points[2].coordinates, coords(B))
        self.assertAlmostEqual(segmented.waypoint_distance(1), 185.3, delta=1.0)
        self.assertEqual(segmented.waypoint_distance(0), 0.0)

    def test_points_near_a_step_are_excluded(self):
        near_b = (33.78, -84.39803)  # about 3m before the turn
        leg = walk_leg(geometry=[A, MID1, near_b, B, MID2, C])
        segmented = self.segmenter.segment(leg)
        self.assertNotIn(coords(near_b), [p.coordinates for p in segmented.points])
        self.assertEqual(len(segmented.segments), 4)

    def test_off_geometry_step_is_placed_in_nearest_slot(self):
        off_line = (33.78005, -84.3985)  # about 5m north of the line, between MID1 and B
        leg = walk_leg(steps=[
            step(A, "Main Street", "DEPART", "EAST", 90.0),
            step(off_line, "Alley", "LEFT", "NORTH", 0.0),
            step(B, "Oak Avenue", "LEFT", "NORTH", 0.0),
        ])
        points = self.segmenter.segment(leg).points
        waypoint_order = [p.waypoint_index for p in points if p.is_waypoint]
        self.assertEqual(waypoint_order, [0, 1, 2])
        mid1_index = [p.coordinates for p in points].index(coords(MID1))
        self.assertEqual(points[mid1_index + 1].waypoint_index, 1)

    def test_transit_leg_uses_stops_as_waypoints(self):
        segmented = self.segmenter.segment(bus_leg())
        self.assertEqual(len(segmented.waypoints), 5)
        self.assertEqual(len(segmented.segments), 5)
        self.assertEqual(segmented.points[-1].waypoint_index, 4)
        self.assertEqual(segmented.points[-1].coordinates, coords(S5))

    def test_single_point_leg_has_no_segments(self):
        data = walk_leg_data(geometry=[A])
        data["to"] = dict(data["from"])
        data["steps"] = []
        self.assertEqual(self.segmenter.create_segments(Leg.model_validate(data)), [])

    def test_leg_without_geometry_uses_endpoints(self):
        data = walk_leg_data(steps=[])
        data["legGeometry"] = None
        segments = self.segmenter.create_segments(Leg.model_validate(data))
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].start, coords(A))
        self.assertEqual(segments[0].end, coords(C))

    def test_malformed_polyline(self):
        with self.assertRaises(PolylineDecodeError):
            decode_polyline("abc def")
        with self.assertRaises(PolylineDecodeError):
            decode_polyline("_")
        data = walk_leg_data()
        data["legGeometry"]["points"] = "\x01\x02"
        with self.assertRaises(PolylineDecodeError):
            self.segmenter.segment(Leg.model_validate(data))

    def test_decode(self):
        self.assertEqual(decode_polyline(""), [])
        decoded = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
        self.assertEqual(len(decoded), 3)
        self.assertAlmostEqual(decoded[0].lat, 38.5)
        self.assertAlmostEqual(decoded[0].lon, -120.2)


if __name__ == '__main__':
    unittest.main()
