from press_config import MM_PER_UNIT, SUPPORTED_UNITS, UNIT_PRECISION


def _check_unit(unit):
    if unit not in SUPPORTED_UNITS:
        raise ValueError(f"Unsupported unit: {unit!r} (expected one of {', '.join(SUPPORTED_UNITS)})")
    return unit


def _round_for_unit(value, unit):
    decimals = UNIT_PRECISION[unit]
    if decimals == 0:
        return float(round(value))
    return round(value, decimals)


def to_millimeters(value, unit):
    """Display value -> millimeters, no rounding (feeds the calculation)."""
    return float(value) * MM_PER_UNIT[_check_unit(unit)]


def from_millimeters(value, unit):
    """Millimeters -> display value, rounded to the unit's precision."""
    return _round_for_unit(float(value) / MM_PER_UNIT[_check_unit(unit)], unit)


def to_display_unit(value, unit):
    """Millimeters -> display value without rounding, for restoring saved jobs."""
    return float(value) / MM_PER_UNIT[_check_unit(unit)]


def convert_value(value, from_unit, to_unit):
    """Re-express an input field value after the display unit is toggled."""
    _check_unit(from_unit)
    _check_unit(to_unit)
    if from_unit == to_unit:
        return float(value)
    mm_value = float(value) * MM_PER_UNIT[from_unit]
    return _round_for_unit(mm_value / MM_PER_UNIT[to_unit], to_unit)


def format_length(mm_value, unit, decimals=1):
    converted = from_millimeters(mm_value, unit)
    if unit == "cm":
        return f"{converted:.{decimals}f} {unit}"
    return f"{int(round(converted))} {unit}"


def format_dimensions(width_mm, height_mm, unit):
    w = from_millimeters(width_mm, unit)
    h = from_millimeters(height_mm, unit)
    if unit == "cm":
        return f"{w:.1f} x {h:.1f} {unit}"
    return f"{int(round(w))} x {int(round(h))} {unit}"


def step_for_unit(unit):
    """Increment used by the number inputs in the given unit."""
    return 0.1 if _check_unit(unit) == "cm" else 1.0
