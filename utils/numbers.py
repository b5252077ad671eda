"""Lenient numeric coercion for form values that arrive as text."""
import math
from typing import Any, Optional


def coerce_number(value: Any) -> Optional[float]:
    """
    Return `value` as a finite float, or None when it is not a usable number.
    Accepts ints, floats and numeric strings (surrounding whitespace ignored).
    Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        # ints beyond the float range overflow instead of becoming inf
        number = float(value)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def plain_number(number: float) -> int | float:
    """Drop the fractional part when it is zero so 100000.0 is stored as 100000."""
    return int(number) if float(number).is_integer() else number


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
