import unittest

from trip_tracker_service.models.mobility import (
    MobilityProfile,
    VisionLimitation,
    get_mobility_codes,
    needs_extended_phase,
)


def mode(devices, vision=None, limited=False):
    return MobilityProfile(
        is_mobility_limited=limited,
        mobility_devices=devices,
        vision_limitation=vision,
    ).mobility_mode


class TestMobilityMode(unittest.TestCase):
    def test_devices(self):
        self.assertEqual(mode(["service animal", "crutches"]), "Device")
        self.assertEqual(mode(["service animal", "crutches", "electric wheelchair"]), "WChairE")
        self.assertEqual(mode(["mobility scooter", "cane"]), "MScooter")

    def test_white_cane_means_blind(self):
        self.assertEqual(mode(["service animal", "crutches", "electric wheelchair", "white cane"]), "WChairE-Blind")
        self.assertEqual(mode(["manual wheelchair", "electric wheelchair", "white cane"]), "WChairM-Blind")
        self.assertEqual(mode(["white cane"]), "Blind")

    def test_none_overrides_devices(self):
        self.assertEqual(mode(["cane", "none", "service animal"]), "None")

    def test_unknown_devices_are_ignored(self):
        self.assertEqual(mode(["cardboard transmogrifier"]), "None")
        self.assertEqual(mode([]), "None")

    def test_explicit_vision_limitation_overrides_white_cane(self):
        self.assertEqual(
            mode(["electric wheelchair", "white cane"], VisionLimitation.LOW_VISION),
            "WChairE-LowVision",
        )
        self.assertEqual(
            mode(["manual wheelchair", "stroller"], VisionLimitation.LEGALLY_BLIND),
            "WChairM-Blind",
        )
        self.assertEqual(mode(["white cane"], VisionLimitation.NONE), "None")

    def test_limited_mobility_without_devices(self):
        self.assertEqual(mode([], limited=True), "Some")
        self.assertEqual(mode([], VisionLimitation.LOW_VISION, limited=True), "Some-LowVision")
        self.assertEqual(mode([], VisionLimitation.LOW_VISION), "LowVision")

    def test_mobility_codes(self):
        self.assertEqual(get_mobility_codes("None"), [0])
        self.assertEqual(get_mobility_codes("WChairE"), [3])
        self.assertEqual(get_mobility_codes("Some-Blind"), [17])
        self.assertEqual(get_mobility_codes("Hovercraft"), [0])
        self.assertEqual(get_mobility_codes(None), [0])

    def test_extended_phase(self):
        self.assertFalse(needs_extended_phase("None"))
        self.assertFalse(needs_extended_phase(None))
        self.assertTrue(needs_extended_phase("WChairM"))


if __name__ == '__main__':
    unittest.main()
