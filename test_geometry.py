import unittest

from trip_tracker_service.models.base import Coordinates
from trip_tracker_service.utils.geometry import (
    angle_diff,
    calculate_bearing,
    create_point,
    get_distance,
    get_distance_from_line,
    is_point_between,
    project_onto_segment,
)

ORIGIN = Coordinates(lat=33.78, lon=-84.400)
EAST = Coordinates(lat=33.78, lon=-84.398)


class TestGeometry(unittest.TestCase):
    def test_distance(self):
        # 0.001 degrees of longitude at this latitude is roughly 92.6 meters
        self.assertAlmostEqual(get_distance(ORIGIN, Coordinates(lat=33.78, lon=-84.399)), 92.6, delta=1.0)
        self.assertEqual(get_distance(ORIGIN, ORIGIN), 0.0)

    def test_bearing(self):
        self.assertAlmostEqual(calculate_bearing(ORIGIN, EAST), 90.0, delta=0.1)
        self.assertAlmostEqual(calculate_bearing(ORIGIN, Coordinates(lat=33.79, lon=-84.400)), 0.0, delta=0.1)
        self.assertAlmostEqual(calculate_bearing(EAST, ORIGIN), 270.0, delta=0.1)

    def test_angle_diff(self):
        self.assertEqual(angle_diff(350, 10), 20)
        self.assertEqual(angle_diff(10, 350), -20)
        self.assertEqual(angle_diff(0, 180), 180)
        self.assertEqual(angle_diff(90, 0), -90)

    def test_create_point(self):
        point = create_point(ORIGIN, 50, 0)
        self.assertAlmostEqual(get_distance(ORIGIN, point), 50, delta=0.01)
        self.assertGreater(point.lat, ORIGIN.lat)

    def test_project_onto_segment(self):
        midpoint = Coordinates(lat=33.78, lon=-84.399)
        above = create_point(midpoint, 10, 0)
        distance, t = project_onto_segment(above, ORIGIN, EAST)
        self.assertAlmostEqual(distance, 10, delta=0.1)
        self.assertAlmostEqual(t, 0.5, delta=0.01)

    def test_projection_is_clamped(self):
        beyond = Coordinates(lat=33.78, lon=-84.397)
        distance, t = project_onto_segment(beyond, ORIGIN, EAST)
        self.assertEqual(t, 1.0)
        self.assertAlmostEqual(distance, get_distance(EAST, beyond), delta=0.5)
        self.assertAlmostEqual(get_distance_from_line(ORIGIN, EAST, beyond), distance)

    def test_is_point_between(self):
        midpoint = Coordinates(lat=33.78, lon=-84.399)
        self.assertTrue(is_point_between(ORIGIN, EAST, midpoint, 2.0))
        self.assertTrue(is_point_between(ORIGIN, EAST, EAST, 2.0))
        self.assertFalse(is_point_between(ORIGIN, EAST, Coordinates(lat=33.78, lon=-84.397), 2.0))
        self.assertFalse(is_point_between(ORIGIN, EAST, create_point(midpoint, 5, 0), 2.0))


if __name__ == '__main__':
    unittest.main()
