"""Tests for the great-circle helpers and set-point decoding."""

import unittest

from custom_components.kia_hyundai.const import UNIT_KM, UNIT_MI
from custom_components.kia_hyundai.geo import displaced, distance
from custom_components.kia_hyundai.temperature import temperature_from_code


class TestDistance(unittest.TestCase):

    def test_same_point(self):
        self.assertEqual(distance(52.0, 5.0, 52.0, 5.0), 0.0)

    def test_one_degree_of_latitude(self):
        self.assertAlmostEqual(distance(0.0, 0.0, 1.0, 0.0, UNIT_KM), 111.19, places=1)

    def test_miles_are_shorter_numbers(self):
        km = distance(52.0, 5.0, 48.85, 2.35, UNIT_KM)
        mi = distance(52.0, 5.0, 48.85, 2.35, UNIT_MI)
        self.assertAlmostEqual(km / mi, 1.609, places=2)

    def test_symmetric(self):
        self.assertEqual(distance(52.0, 5.0, 40.7, -74.0), distance(40.7, -74.0, 52.0, 5.0))

    def test_rounded_to_two_decimals(self):
        value = distance(52.0, 5.0, 52.0123, 5.0456)
        self.assertEqual(value, round(value, 2))


class TestDisplaced(unittest.TestCase):

    def test_within_threshold(self):
        self.assertFalse(displaced(52.0, 5.0, 52.00005, 5.00005, 0.0001))

    def test_either_axis_counts(self):
        self.assertTrue(displaced(52.0, 5.0, 52.0, 5.001, 0.0001))
        self.assertTrue(displaced(52.0, 5.0, 52.001, 5.0, 0.0001))


class TestTemperatureFromCode(unittest.TestCase):

    def test_hex_codes(self):
        self.assertEqual(temperature_from_code("00H"), 14.0)
        self.assertEqual(temperature_from_code("0EH"), 21.0)
        self.assertEqual(temperature_from_code("20H"), 30.0)

    def test_hex_code_out_of_range(self):
        self.assertIsNone(temperature_from_code("21H"))
        self.assertIsNone(temperature_from_code("ZZH"))

    def test_plain_numbers(self):
        self.assertEqual(temperature_from_code(22), 22.0)
        self.assertEqual(temperature_from_code(21.5), 21.5)
        self.assertEqual(temperature_from_code("19.5"), 19.5)

    def test_not_a_temperature(self):
        for code in (None, True, "", "OFF", "off", "LOW"):
            with self.subTest(code=code):
                self.assertIsNone(temperature_from_code(code))
