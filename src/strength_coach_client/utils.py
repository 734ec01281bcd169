"""Utility functions."""
import math
from typing import Optional


def to_int(s: Optional[str]) -> Optional[int]:
    """Convert string to int, returning None if conversion fails."""
    try:
        return int(s.strip()) if s is not None else None
    except Exception:
        return None


def to_float(s: Optional[str]) -> Optional[float]:
    """Convert string to a finite float, returning None if conversion fails."""
    if s is None or s.strip() == "":
        return None
    try:
        value = float(s.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def is_blank(s: Optional[str]) -> bool:
    return s is None or s.strip() == ""
