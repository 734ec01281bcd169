"""Weight unit conversion.

Kilograms are the canonical unit on the wire. Pounds are a presentation-only
transform and are always snapped to the nearest multiple of 5.
"""
from typing import Optional

from .config import WeightUnit
from .errors import ValidationError

KG_PER_LB = 0.45359237


def round_to_nearest_5(x: float) -> float:
    """Round half away from zero to the nearest multiple of 5."""
    q = abs(x) / 5
    snapped = int(q + 0.5) * 5
    return float(snapped if x >= 0 else -snapped)


def kg_to_lb(kg: float) -> float:
    return kg / KG_PER_LB


def lb_to_kg(lb: float) -> float:
    return lb * KG_PER_LB


def to_display(weight_kg: Optional[float], unit: WeightUnit) -> str:
    """Format a canonical kilogram weight for the active display unit.

    Kilograms show one decimal place; pounds are converted, rounded to the
    nearest 5 and shown as a whole number. Missing weights render as ``?``.
    """
    if weight_kg is None:
        return "?"
    if unit == "kg":
        return f"{weight_kg:.1f}"
    return f"{round_to_nearest_5(kg_to_lb(weight_kg)):.0f}"


def to_canonical_kg(entered_value: float, unit: WeightUnit) -> float:
    """Convert a value typed in ``unit`` to kilograms.

    Pound input is snapped to the nearest 5 before conversion so a round trip
    through :func:`to_display` shows exactly what was entered.

    Raises:
        ValidationError: if the value is not positive (before or after snapping)
    """
    if entered_value is None or entered_value <= 0:
        raise ValidationError("Weight required", field="weight")
    if unit == "kg":
        return float(entered_value)
    snapped = round_to_nearest_5(entered_value)
    if snapped <= 0:
        raise ValidationError("Weight required", field="weight")
    return lb_to_kg(snapped)
