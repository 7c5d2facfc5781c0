import unittest

from imposition_engine import (
    BleedSpec,
    EmptyLayout,
    Layout,
    LayoutConfig,
    LayoutError,
    LayoutErrorKind,
    Margins,
    PieceSpec,
    SheetSpec,
    SpacingSpec,
    calculate_layout,
    result_to_dict,
)


def make_config(piece=(100.0, 50.0), sheet=(220.0, 110.0), bleed=None, spacing=None, **flags):
    return LayoutConfig(
        piece=PieceSpec(*piece),
        sheet=SheetSpec(*sheet),
        bleed=bleed or BleedSpec(),
        spacing=spacing or SpacingSpec(),
        **flags,
    )


class BasicGridTests(unittest.TestCase):
    def test_two_by_two_grid_without_spacing(self):
        result = calculate_layout(make_config())

        self.assertIsInstance(result, Layout)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.error_message, "")
        self.assertEqual((result.units_x, result.units_y, result.units_total), (2, 2, 4))
        self.assertEqual([(p.x, p.y) for p in result.pieces], [(0, 0), (100, 0), (0, 50), (100, 50)])
        for p in result.pieces:
            self.assertEqual((p.width, p.height, p.total_width, p.total_height), (100, 50, 100, 50))
        self.assertAlmostEqual(result.utilization, 82.6446, places=4)
        margins = result.final_margins
        self.assertEqual((margins.top, margins.bottom, margins.left, margins.right), (10, 0, 0, 20))
        self.assertEqual((result.sheet_width, result.sheet_height), (220.0, 110.0))

    def test_center_horizontally_splits_surplus(self):
        result = calculate_layout(make_config(center_horizontally=True))

        self.assertEqual(result.final_margins.left, 10)
        self.assertEqual(result.final_margins.right, 10)
        self.assertEqual(result.pieces[0].x, 10)
        self.assertEqual(result.pieces[1].x, 110)

    def test_gutters_use_fencepost_count(self):
        # 3 pieces of 50 with 2 gutters of 2 need exactly 154.
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(154.0, 40.0), spacing=SpacingSpec(horizontal_gutter=2.0)))

        self.assertEqual(result.units_x, 3)
        self.assertEqual([p.x for p in result.pieces], [0, 52, 104])
        self.assertEqual(result.final_margins.right, 0)

    def test_bleed_is_part_of_footprint_but_not_utilization(self):
        bleed = BleedSpec(top=3.0, bottom=3.0, left=3.0, right=3.0)
        result = calculate_layout(make_config(piece=(100.0, 50.0), sheet=(212.0, 112.0), bleed=bleed))

        self.assertEqual((result.units_x, result.units_y), (2, 2))
        first = result.pieces[0]
        self.assertEqual((first.total_width, first.total_height), (106.0, 56.0))
        self.assertEqual(first.trim_origin(bleed), (3.0, 3.0))
        self.assertEqual(result.pieces[1].x, 106.0)
        self.assertAlmostEqual(result.utilization, 4 * 100 * 50 / (212 * 112) * 100)


class CenterGutterTests(unittest.TestCase):
    def test_even_count_replaces_middle_gutter(self):
        spacing = SpacingSpec(horizontal_gutter=2.0, center_horizontal_gutter=5.0)
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(230.0, 100.0), spacing=spacing))

        self.assertEqual(result.units_x, 4)
        # 4 * 50 + 2 * 2 + 5 = 209 occupied
        self.assertEqual(result.final_margins.right, 230 - 209)
        self.assertEqual([p.x for p in result.pieces[:4]], [0, 52, 107, 159])

    def test_odd_count_keeps_uniform_gutters(self):
        spacing = SpacingSpec(horizontal_gutter=2.0, center_horizontal_gutter=5.0)
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(170.0, 40.0), spacing=spacing))

        self.assertEqual(result.units_x, 3)
        self.assertEqual([p.x for p in result.pieces], [0, 52, 104])
        self.assertEqual(result.final_margins.right, 170 - 154)

    def test_even_count_without_center_gutter_is_uniform(self):
        spacing = SpacingSpec(horizontal_gutter=2.0)
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(230.0, 40.0), spacing=spacing))

        self.assertEqual([p.x for p in result.pieces], [0, 52, 104, 156])
        self.assertEqual(result.final_margins.right, 230 - 206)

    def test_wide_center_gutter_overflows_sheet_and_clamps_margin(self):
        spacing = SpacingSpec(center_horizontal_gutter=10.0)
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(200.0, 40.0), spacing=spacing))

        self.assertEqual((result.units_x, result.units_y), (4, 1))
        self.assertEqual([p.x for p in result.pieces], [0, 50, 110, 160])
        # Last piece ends at 210, past the sheet edge; the report still says 0.
        self.assertEqual(result.pieces[-1].x + result.pieces[-1].total_width, 210)
        self.assertEqual(result.final_margins, Margins(top=0, bottom=0, left=0, right=0))

    def test_wide_center_gutter_centered_starts_left_of_sheet(self):
        spacing = SpacingSpec(center_horizontal_gutter=10.0)
        result = calculate_layout(make_config(
            piece=(50.0, 40.0), sheet=(200.0, 40.0), spacing=spacing, center_horizontally=True,
        ))

        self.assertEqual([p.x for p in result.pieces], [-5, 45, 105, 155])
        self.assertEqual((result.final_margins.left, result.final_margins.right), (0, 0))

    def test_vertical_center_gutter_between_middle_rows(self):
        spacing = SpacingSpec(vertical_gutter=2.0, center_vertical_gutter=6.0)
        result = calculate_layout(make_config(piece=(50.0, 40.0), sheet=(50.0, 100.0), spacing=spacing))

        self.assertEqual(result.units_y, 2)
        self.assertEqual([p.y for p in result.pieces], [0, 46])
        self.assertEqual(result.final_margins.top, 100 - 86)


class GripperTests(unittest.TestCase):
    def test_gripper_reserves_bottom_band(self):
        spacing = SpacingSpec(gripper=10.0, top_margin=5.0)
        result = calculate_layout(make_config(piece=(100.0, 50.0), sheet=(200.0, 165.0), spacing=spacing))

        self.assertEqual(result.units_y, 3)
        self.assertEqual(result.pieces[0].y, 10.0)
        self.assertEqual(result.final_margins.bottom, 10.0)
        self.assertEqual(result.final_margins.top, 5.0)

    def test_gripper_on_bleed_mode_subtracts_bottom_bleed(self):
        bleed = BleedSpec(top=3.0, bottom=3.0, left=3.0, right=3.0)
        spacing = SpacingSpec(gripper=10.0)
        result = calculate_layout(make_config(
            piece=(100.0, 50.0),
            sheet=(300.0, 200.0),
            bleed=bleed,
            spacing=spacing,
            use_gripper_on_bleed_mode=True,
        ))

        self.assertEqual((result.units_x, result.units_y), (2, 3))
        self.assertEqual(result.final_margins.bottom, 7.0)
        self.assertEqual(result.pieces[0].y, 7.0)
        self.assertEqual(result.final_margins.top, 193.0 - 168.0)

    def test_negative_bottom_margin_is_clamped_but_placement_is_not(self):
        bleed = BleedSpec(bottom=5.0)
        spacing = SpacingSpec(gripper=2.0)
        result = calculate_layout(make_config(
            piece=(40.0, 40.0),
            sheet=(100.0, 100.0),
            bleed=bleed,
            spacing=spacing,
            use_gripper_on_bleed_mode=True,
        ))

        self.assertEqual(result.units_y, 2)
        self.assertEqual(result.final_margins.bottom, 0)
        self.assertEqual(result.pieces[0].y, -3.0)
        self.assertEqual(result.final_margins.top, 13.0)


class OutcomeTests(unittest.TestCase):
    def test_non_positive_piece_is_an_error(self):
        result = calculate_layout(make_config(piece=(-5.0, 50.0)))

        self.assertIsInstance(result, LayoutError)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.kind, LayoutErrorKind.INVALID_PIECE_DIMENSIONS)
        self.assertIn("Piece dimensions must be positive", result.error_message)
        self.assertEqual(result.pieces, ())
        self.assertEqual(result.units_total, 0)

    def test_piece_check_comes_before_sheet_check(self):
        result = calculate_layout(make_config(piece=(0.0, 50.0), sheet=(0.0, 0.0)))

        self.assertEqual(result.kind, LayoutErrorKind.INVALID_PIECE_DIMENSIONS)

    def test_piece_larger_than_sheet_is_an_error(self):
        result = calculate_layout(make_config(piece=(1000.0, 1000.0), sheet=(500.0, 500.0)))

        self.assertFalse(result.is_valid)
        self.assertEqual(result.kind, LayoutErrorKind.PIECE_EXCEEDS_SHEET)
        self.assertIn("larger than the sheet", result.error_message)
        self.assertEqual(result.pieces, ())
        self.assertEqual((result.sheet_width, result.sheet_height), (500.0, 500.0))

    def test_bleed_can_push_piece_over_sheet(self):
        result = calculate_layout(make_config(piece=(100.0, 50.0), sheet=(104.0, 60.0), bleed=BleedSpec(left=3.0, right=3.0)))

        self.assertEqual(result.kind, LayoutErrorKind.PIECE_EXCEEDS_SHEET)

    def test_zero_sheet_is_empty_not_error(self):
        result = calculate_layout(make_config(piece=(1000.0, 1000.0), sheet=(0.0, 110.0)))

        self.assertIsInstance(result, EmptyLayout)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.units_total, 0)
        self.assertEqual(result.pieces, ())
        self.assertEqual(result.utilization, 0)
        self.assertIsNone(result.final_margins)
        self.assertEqual(result_to_dict(result)["final_margins"], {})

    def test_no_fit_reports_unused_band(self):
        result = calculate_layout(make_config(piece=(100.0, 80.0), sheet=(500.0, 100.0), spacing=SpacingSpec(gripper=30.0)))

        self.assertIsInstance(result, EmptyLayout)
        self.assertTrue(result.is_valid)
        self.assertEqual((result.units_x, result.units_y, result.units_total), (0, 0, 0))
        margins = result.final_margins
        self.assertEqual((margins.top, margins.bottom, margins.left, margins.right), (70, 30, 500, 0))


class PropertyTests(unittest.TestCase):
    CONFIGS = [
        make_config(),
        make_config(piece=(90.0, 50.0), sheet=(350.0, 500.0), bleed=BleedSpec(3.0, 3.0, 3.0, 3.0), spacing=SpacingSpec(gripper=10.0, horizontal_gutter=4.0, vertical_gutter=4.0)),
        make_config(piece=(50.0, 40.0), sheet=(230.0, 100.0), spacing=SpacingSpec(horizontal_gutter=2.0, center_horizontal_gutter=5.0, center_vertical_gutter=7.0), center_horizontally=True),
        make_config(piece=(210.0, 297.0), sheet=(700.0, 1000.0), bleed=BleedSpec(5.0, 2.0, 5.0, 5.0), spacing=SpacingSpec(gripper=12.0, top_margin=8.0), use_gripper_on_bleed_mode=True),
        make_config(piece=(100.0, 80.0), sheet=(500.0, 100.0), spacing=SpacingSpec(gripper=30.0)),
    ]

    def test_piece_count_matches_grid(self):
        for config in self.CONFIGS:
            result = calculate_layout(config)
            self.assertEqual(len(result.pieces), result.units_x * result.units_y)
            self.assertEqual(result.units_total, result.units_x * result.units_y)

    def test_utilization_uses_trim_area(self):
        for config in self.CONFIGS:
            result = calculate_layout(config)
            expected = result.units_total * config.piece.width * config.piece.height / (config.sheet.width * config.sheet.height) * 100
            self.assertAlmostEqual(result.utilization, expected)

    def test_same_config_same_result(self):
        for config in self.CONFIGS:
            self.assertEqual(calculate_layout(config), calculate_layout(config))

    def test_pieces_are_row_major_from_bottom_left(self):
        result = calculate_layout(self.CONFIGS[1])
        keys = [(p.y, p.x) for p in result.pieces]
        self.assertEqual(keys, sorted(keys))

    def test_wider_sheet_never_loses_columns(self):
        previous = 0
        for width in range(106, 900, 7):
            config = make_config(
                piece=(100.0, 50.0),
                sheet=(float(width), 300.0),
                bleed=BleedSpec(3.0, 3.0, 3.0, 3.0),
                spacing=SpacingSpec(horizontal_gutter=4.0, center_horizontal_gutter=9.0),
            )
            result = calculate_layout(config)
            self.assertGreaterEqual(result.units_x, previous)
            previous = result.units_x

    def test_result_to_dict_shape(self):
        data = result_to_dict(calculate_layout(make_config()))

        self.assertTrue(data["is_valid"])
        self.assertEqual(data["units_total"], 4)
        self.assertEqual(data["final_margins"], {"top": 10, "bottom": 0, "left": 0, "right": 20})
        self.assertEqual(data["pieces"][1], {"x": 100, "y": 0, "width": 100.0, "height": 50.0, "total_width": 100.0, "total_height": 50.0})


if __name__ == "__main__":
    unittest.main()
