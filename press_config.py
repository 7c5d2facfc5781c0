"""
Configuration constants for the imposition calculator.

Dimensions are millimeters. Display units are handled in unit_utils.
"""

# --- Parent paper presets (width, height in mm) ---
PAPER_PRESETS = {
    "70 x 100": (700.0, 1000.0),
    "65 x 90": (650.0, 900.0),
    "61 x 86": (610.0, 860.0),
    "57 x 87": (570.0, 870.0),
    "SRA3": (320.0, 450.0),
    "A3": (297.0, 420.0),
    "Custom": None,
}
DEFAULT_PAPER_PRESET = "70 x 100"

# Used when the custom paper inputs are empty or not positive.
DEFAULT_CUSTOM_PAPER = (1000.0, 700.0)

# --- Cut types: how many parts the parent paper is cut into (x, y) ---
CUT_PRESETS = {
    "Full (1 x 1)": (1, 1),
    "Half (2 x 1)": (2, 1),
    "Third (3 x 1)": (3, 1),
    "Quarter (2 x 2)": (2, 2),
    "Sixth (3 x 2)": (3, 2),
    "Eighth (4 x 2)": (4, 2),
    "Custom": None,
}
DEFAULT_CUT_PRESET = "Quarter (2 x 2)"

# --- Job defaults (mm) ---
DEFAULT_PIECE = {"width": 90.0, "height": 50.0}
DEFAULT_BLEED = 3.0
DEFAULT_SPACING = {
    "gripper": 10.0,
    "top_margin": 0.0,
    "horizontal_gutter": 0.0,
    "vertical_gutter": 0.0,
    "center_horizontal_gutter": 0.0,
    "center_vertical_gutter": 0.0,
}

# --- Units ---
SUPPORTED_UNITS = ("mm", "cm")
DEFAULT_UNIT = "cm"
MM_PER_UNIT = {"mm": 1.0, "cm": 10.0}
# Decimal places kept when showing/converting a value in each unit.
UNIT_PRECISION = {"mm": 0, "cm": 1}

# --- Report / export ---
REPORT_TITLE = "Imposition Technical Sheet"
REPORT_VERSION = "1.0"
DEFAULT_JOB_TITLE = "untitled"
A4_PORTRAIT_MM = (210.0, 297.0)
REPORT_MARGIN_MM = 20.0
SVG_STROKE_MM = 0.25

# --- Drawing colors ---
SHEET_FACE_COLOR = "#ffffff"
SHEET_EDGE_COLOR = "#000000"
BLEED_FACE_COLOR = (100 / 255, 150 / 255, 1.0, 0.1)
BLEED_EDGE_COLOR = "#3182ce"
TRIM_EDGE_COLOR = "#000000"
CUT_LINE_COLOR = "#ff0000"
REPORT_PRIMARY_COLOR = "#3182ce"
REPORT_ROW_SHADE = "#f7fafc"
REPORT_TEXT_COLOR = "#2d3748"

# --- Logging ---
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL = "INFO"
