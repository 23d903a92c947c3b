"""Lenient numeric parsing for form data that may be missing, stringified or garbage."""

import math
import numbers
from typing import Any


def to_number(value: Any, default: float = 0.0) -> float:
    """
    Coerce a form value to a finite float.

    Strings like "50,000" are accepted, as are Decimal and other real
    numbers; None, booleans, NaN, infinities, values too large for a float
    and anything unparseable become ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        if isinstance(value, numbers.Real):
            number = float(value)
        elif isinstance(value, str):
            cleaned = value.strip().replace(",", "")
            if not cleaned:
                return default
            number = float(cleaned)
        else:
            return default
    except (ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return number


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like a spreadsheet would (0.5 goes up), not banker's rounding."""
    scaled = value * 10 ** ndigits + 0.5
    if not math.isfinite(scaled):
        return 0.0
    return math.floor(scaled) / 10 ** ndigits


def round_int(value: float) -> int:
    return int(round_half_up(value))
