import unittest

from unit_utils import (
    convert_value,
    format_dimensions,
    format_length,
    from_millimeters,
    step_for_unit,
    to_display_unit,
    to_millimeters,
)


class UnitUtilsTests(unittest.TestCase):
    def test_to_millimeters(self):
        self.assertEqual(to_millimeters(9, "cm"), 90.0)
        self.assertEqual(to_millimeters(9.5, "mm"), 9.5)

    def test_from_millimeters_rounds_to_unit_precision(self):
        self.assertEqual(from_millimeters(123.4, "cm"), 12.3)
        self.assertEqual(from_millimeters(123.6, "mm"), 124.0)

    def test_to_display_unit_keeps_saved_precision(self):
        self.assertEqual(to_display_unit(2.5, "mm"), 2.5)
        self.assertEqual(to_display_unit(25.0, "cm"), 2.5)
        self.assertAlmostEqual(to_millimeters(to_display_unit(0.25, "cm"), "cm"), 0.25)
        self.assertNotEqual(from_millimeters(2.5, "mm"), 2.5)

    def test_convert_value_between_units(self):
        self.assertEqual(convert_value(90, "mm", "cm"), 9.0)
        self.assertEqual(convert_value(9.5, "cm", "mm"), 95.0)
        self.assertEqual(convert_value(3.25, "cm", "cm"), 3.25)

    def test_format_length(self):
        self.assertEqual(format_length(125, "cm"), "12.5 cm")
        self.assertEqual(format_length(125.4, "mm"), "125 mm")

    def test_format_dimensions(self):
        self.assertEqual(format_dimensions(700, 1000, "cm"), "70.0 x 100.0 cm")
        self.assertEqual(format_dimensions(700, 1000, "mm"), "700 x 1000 mm")

    def test_step_for_unit(self):
        self.assertEqual(step_for_unit("cm"), 0.1)
        self.assertEqual(step_for_unit("mm"), 1.0)

    def test_unknown_unit_raises(self):
        with self.assertRaises(ValueError):
            to_millimeters(1, "in")
        with self.assertRaises(ValueError):
            convert_value(1, "mm", "pt")


if __name__ == "__main__":
    unittest.main()
