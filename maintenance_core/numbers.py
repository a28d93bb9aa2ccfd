# maintenance_core/numbers.py
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

SECONDS_PER_DAY = 86400


def round_half_up(value, digits: int = 0):
    """Round like a report would (2.5 -> 3), not banker's rounding.

    Returns an int when ``digits`` is 0, a float otherwise.
    """
    if value is None or math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot round non-finite value: {value}")
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)


def ceil_days(later: datetime, earlier: datetime) -> int:
    """Whole days from ``earlier`` to ``later``, rounded up (partial days count)."""
    return math.ceil((later - earlier).total_seconds() / SECONDS_PER_DAY)


def safe_ratio(numerator, denominator, default=0.0):
    """numerator / denominator, or ``default`` when the denominator is zero"""
    if not denominator:
        return default
    return numerator / denominator


def percentage(part, whole) -> int:
    """Rounded percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return round_half_up(100 * part / whole)
