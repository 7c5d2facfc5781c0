"""
Grid imposition of a single rectangular piece on a press sheet.

All values are millimeters. The sheet origin is its lower-left corner and
piece coordinates refer to the lower-left corner of the piece footprint
(trim size plus bleed).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class PieceSpec:
    width: float
    height: float


@dataclass(frozen=True)
class BleedSpec:
    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0


@dataclass(frozen=True)
class SpacingSpec:
    gripper: float = 0.0
    top_margin: float = 0.0
    horizontal_gutter: float = 0.0
    vertical_gutter: float = 0.0
    center_horizontal_gutter: float = 0.0
    center_vertical_gutter: float = 0.0


@dataclass(frozen=True)
class SheetSpec:
    width: float
    height: float


@dataclass(frozen=True)
class LayoutConfig:
    piece: PieceSpec
    sheet: SheetSpec
    bleed: BleedSpec = field(default_factory=BleedSpec)
    spacing: SpacingSpec = field(default_factory=SpacingSpec)
    center_horizontally: bool = False
    use_gripper_on_bleed_mode: bool = False

    @property
    def total_piece_width(self):
        return self.piece.width + self.bleed.left + self.bleed.right

    @property
    def total_piece_height(self):
        return self.piece.height + self.bleed.top + self.bleed.bottom


@dataclass(frozen=True)
class PiecePlacement:
    x: float
    y: float
    width: float
    height: float
    total_width: float
    total_height: float

    def trim_origin(self, bleed):
        return self.x + bleed.left, self.y + bleed.bottom


@dataclass(frozen=True)
class Margins:
    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0


class LayoutErrorKind(str, Enum):
    INVALID_PIECE_DIMENSIONS = "invalid_piece_dimensions"
    PIECE_EXCEEDS_SHEET = "piece_exceeds_sheet"


ERROR_MESSAGES = {
    LayoutErrorKind.INVALID_PIECE_DIMENSIONS: "Piece dimensions must be positive.",
    LayoutErrorKind.PIECE_EXCEEDS_SHEET: "Piece with bleed is larger than the sheet.",
}


# The three outcomes share one read interface: is_valid, error_message,
# units_total/units_x/units_y, utilization, sheet dims, final_margins, pieces.


@dataclass(frozen=True)
class LayoutError:
    kind: LayoutErrorKind
    sheet_width: float
    sheet_height: float

    is_valid = False
    units_total = 0
    units_x = 0
    units_y = 0
    utilization = 0.0
    final_margins = None
    pieces = ()

    @property
    def error_message(self):
        return ERROR_MESSAGES[self.kind]


@dataclass(frozen=True)
class EmptyLayout:
    """Well-formed request that places nothing (no sheet yet, or zero fit)."""

    sheet_width: float
    sheet_height: float
    final_margins: Margins | None = None

    is_valid = True
    error_message = ""
    units_total = 0
    units_x = 0
    units_y = 0
    utilization = 0.0
    pieces = ()


@dataclass(frozen=True)
class Layout:
    units_x: int
    units_y: int
    utilization: float
    sheet_width: float
    sheet_height: float
    final_margins: Margins
    pieces: tuple[PiecePlacement, ...]

    is_valid = True
    error_message = ""

    @property
    def units_total(self):
        return self.units_x * self.units_y


def _fit_count(available, footprint, gutter):
    denominator = footprint + gutter
    if denominator <= 0:
        return 0
    return math.floor((available + gutter) / denominator)


def _uses_center_gutter(count, center_gutter):
    return count > 1 and count % 2 == 0 and center_gutter > 0


def _occupied_extent(count, footprint, gutter, center_gutter):
    if _uses_center_gutter(count, center_gutter):
        return (count * footprint) + ((count - 2) * gutter) + center_gutter
    return (count * footprint) + ((count - 1) * gutter)


def _gap_after(index, count, gutter, center_gutter):
    """Spacing that follows the piece at ``index``; only called for inner gaps."""
    if count % 2 == 0 and index == (count // 2) - 1 and center_gutter > 0:
        return center_gutter
    return gutter


def _gripper_offset(config):
    if config.use_gripper_on_bleed_mode:
        return config.spacing.gripper - config.bleed.bottom
    return config.spacing.gripper


def calculate_layout(config):
    """Fit as many copies of the piece as possible in one uniform grid.

    Never raises for bad geometry: invalid pieces come back as a
    ``LayoutError``, a missing sheet or a grid with no room as an
    ``EmptyLayout`` and everything else as a ``Layout``.
    """
    piece_w = config.piece.width
    piece_h = config.piece.height
    sheet_w = config.sheet.width
    sheet_h = config.sheet.height
    spacing = config.spacing

    total_w = config.total_piece_width
    total_h = config.total_piece_height

    if piece_w <= 0 or piece_h <= 0:
        return LayoutError(LayoutErrorKind.INVALID_PIECE_DIMENSIONS, sheet_w, sheet_h)
    if sheet_w <= 0 or sheet_h <= 0:
        return EmptyLayout(sheet_w, sheet_h)
    if total_w > sheet_w or total_h > sheet_h:
        return LayoutError(LayoutErrorKind.PIECE_EXCEEDS_SHEET, sheet_w, sheet_h)

    # Gripper only eats into the vertical axis (direction of sheet travel).
    calc_w = sheet_w
    gripper_offset = _gripper_offset(config)
    calc_h = max(0, sheet_h - gripper_offset - spacing.top_margin)

    units_x = _fit_count(calc_w, total_w, spacing.horizontal_gutter)
    units_y = _fit_count(calc_h, total_h, spacing.vertical_gutter)

    if units_x < 1 or units_y < 1:
        return EmptyLayout(
            sheet_w,
            sheet_h,
            Margins(top=calc_h, bottom=sheet_h - calc_h, left=sheet_w, right=0),
        )

    occupied_w = _occupied_extent(units_x, total_w, spacing.horizontal_gutter, spacing.center_horizontal_gutter)
    occupied_h = _occupied_extent(units_y, total_h, spacing.vertical_gutter, spacing.center_vertical_gutter)

    surplus_w = sheet_w - occupied_w
    if config.center_horizontally:
        margin_left = surplus_w / 2
        margin_right = surplus_w / 2
    else:
        margin_left = 0
        margin_right = surplus_w

    margin_bottom = gripper_offset
    margin_top = spacing.top_margin + (calc_h - occupied_h)

    sheet_area = sheet_w * sheet_h
    useful_area = units_x * units_y * piece_w * piece_h
    utilization = (useful_area / sheet_area) * 100 if sheet_area > 0 else 0

    # Placement starts from the unclamped margins, only the report is clamped.
    pieces = []
    current_y = margin_bottom
    for row in range(units_y):
        current_x = margin_left
        for col in range(units_x):
            pieces.append(PiecePlacement(current_x, current_y, piece_w, piece_h, total_w, total_h))
            current_x += total_w
            if col < units_x - 1:
                current_x += _gap_after(col, units_x, spacing.horizontal_gutter, spacing.center_horizontal_gutter)
        current_y += total_h
        if row < units_y - 1:
            current_y += _gap_after(row, units_y, spacing.vertical_gutter, spacing.center_vertical_gutter)

    return Layout(
        units_x=units_x,
        units_y=units_y,
        utilization=utilization,
        sheet_width=sheet_w,
        sheet_height=sheet_h,
        final_margins=Margins(
            top=max(0, margin_top),
            bottom=max(0, margin_bottom),
            left=max(0, margin_left),
            right=max(0, margin_right),
        ),
        pieces=tuple(pieces),
    )


def result_to_dict(result):
    """Flatten any outcome into plain data for display and export glue."""
    margins = result.final_margins
    return {
        "is_valid": result.is_valid,
        "error_message": result.error_message,
        "units_total": result.units_total,
        "units_x": result.units_x,
        "units_y": result.units_y,
        "utilization": result.utilization,
        "sheet_width": result.sheet_width,
        "sheet_height": result.sheet_height,
        "final_margins": {} if margins is None else {
            "top": margins.top,
            "bottom": margins.bottom,
            "left": margins.left,
            "right": margins.right,
        },
        "pieces": [
            {
                "x": p.x,
                "y": p.y,
                "width": p.width,
                "height": p.height,
                "total_width": p.total_width,
                "total_height": p.total_height,
            }
            for p in result.pieces
        ],
    }
