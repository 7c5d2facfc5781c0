from imposition_engine import BleedSpec, LayoutConfig, PieceSpec, SheetSpec, SpacingSpec
from press_config import CUT_PRESETS, DEFAULT_CUSTOM_PAPER, PAPER_PRESETS
from unit_utils import to_millimeters

TRUTHY_VALUES = {"1", "true", "t", "yes", "y", "on"}
FALSY_VALUES = {"0", "false", "f", "no", "n", "off", ""}

SPACING_FIELDS = (
    "gripper",
    "top_margin",
    "horizontal_gutter",
    "vertical_gutter",
    "center_horizontal_gutter",
    "center_vertical_gutter",
)
BLEED_FIELDS = ("top", "bottom", "left", "right")


def coerce_bool(value):
    """Safely coerce mixed UI/import values to bool without bool('False') bugs."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUTHY_VALUES:
            return True
        if normalized in FALSY_VALUES:
            return False
    return False


def coerce_float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _coerce_int(value, default=1):
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def resolve_paper_size(preset, custom_w=None, custom_h=None, unit="mm"):
    """Parent paper size in mm for a preset name or custom values."""
    dims = PAPER_PRESETS.get(preset)
    if dims is not None:
        return dims

    default_w, default_h = DEFAULT_CUSTOM_PAPER
    width = coerce_float(custom_w, 0.0)
    height = coerce_float(custom_h, 0.0)
    width = to_millimeters(width, unit) if width > 0 else default_w
    height = to_millimeters(height, unit) if height > 0 else default_h
    return width, height


def resolve_cut_type(preset, cuts_x=None, cuts_y=None):
    counts = CUT_PRESETS.get(preset)
    if counts is not None:
        return counts
    return max(1, _coerce_int(cuts_x, 1)), max(1, _coerce_int(cuts_y, 1))


def resolve_work_sheet(paper_w, paper_h, cuts_x, cuts_y, width_priority=False):
    """Split the parent paper into the working sheet that goes on press.

    With width priority the longer side of the cut becomes the sheet width.
    """
    cut_w = paper_w / max(1, cuts_x)
    cut_h = paper_h / max(1, cuts_y)
    if width_priority:
        return max(cut_w, cut_h), min(cut_w, cut_h)
    return cut_w, cut_h


def link_bleeds(value):
    """Same bleed on all four sides."""
    return {side: coerce_float(value, 0.0) for side in BLEED_FIELDS}


def _mm(values, key, unit):
    return to_millimeters(coerce_float(values.get(key), 0.0), unit)


def build_layout_config(values, unit, sheet_w, sheet_h):
    """Flat UI values (display unit) -> millimeter LayoutConfig.

    ``sheet_w``/``sheet_h`` are already millimeters. Blank or unparsable fields
    count as zero.
    """
    return LayoutConfig(
        piece=PieceSpec(_mm(values, "piece_width", unit), _mm(values, "piece_height", unit)),
        sheet=SheetSpec(float(sheet_w), float(sheet_h)),
        bleed=BleedSpec(**{side: _mm(values, f"bleed_{side}", unit) for side in BLEED_FIELDS}),
        spacing=SpacingSpec(**{name: _mm(values, name, unit) for name in SPACING_FIELDS}),
        center_horizontally=coerce_bool(values.get("center_horizontally", False)),
        use_gripper_on_bleed_mode=coerce_bool(values.get("use_gripper_on_bleed_mode", False)),
    )


def collect_inputs(values, unit):
    """Resolve paper, cuts and working sheet, then build the config.

    Returns a dict with ``config``, ``paper`` (w, h) and ``cuts`` (x, y).
    """
    paper = resolve_paper_size(
        values.get("paper_preset", "Custom"),
        values.get("custom_paper_width"),
        values.get("custom_paper_height"),
        unit,
    )
    cuts = resolve_cut_type(values.get("cut_preset", "Custom"), values.get("cuts_x"), values.get("cuts_y"))
    sheet_w, sheet_h = resolve_work_sheet(
        paper[0],
        paper[1],
        cuts[0],
        cuts[1],
        coerce_bool(values.get("width_priority", False)),
    )
    return {
        "config": build_layout_config(values, unit, sheet_w, sheet_h),
        "paper": paper,
        "cuts": cuts,
    }
