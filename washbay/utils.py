"""Shared time and money helpers used across the engine."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

MINUTES_PER_DAY = 24 * 60
CENT = Decimal("0.01")


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minute-of-day.

    Examples:
        >>> time_to_minutes("08:30")
        510
        >>> time_to_minutes("24:00")
        1440
    """
    try:
        hours, minutes = value.strip().split(":")
        h, m = int(hours), int(minutes)
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from None
    if not (0 <= m < 60 and 0 <= h * 60 + m <= MINUTES_PER_DAY):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """Format minute-of-day as ``HH:MM`` (hours wrap at 24).

    Examples:
        >>> minutes_to_time(630)
        '10:30'
    """
    h = (minutes // 60) % 24
    m = minutes % 60
    return f"{h:02d}:{m:02d}"


def day_of_week(value: date) -> int:
    """Day index with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def to_decimal(value: Union[int, float, str, Decimal]) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Union[int, float, str, Decimal]) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
