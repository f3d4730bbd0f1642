from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence, Tuple

DAYS_OF_WEEK = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


def kelvin_to_fahrenheit(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return (value - 273.15) * 9.0 / 5.0 + 32.0


def kelvin_to_celsius(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return value - 273.15


def kelvin_to_local(value: Optional[float], use_celsius: bool) -> Optional[float]:
    return kelvin_to_celsius(value) if use_celsius else kelvin_to_fahrenheit(value)


def day_abbrev(dt: datetime, offset_days: int = 0) -> str:
    return DAYS_OF_WEEK[(dt + timedelta(days=offset_days)).weekday()]


def format_price(value: float) -> str:
    if value >= 10000:
        return f"{value:.0f}"
    return f"{value:.2f}"


def format_change(close: float, open_: float) -> str:
    return f"{close - open_:.2f}"


def format_volume(value: float) -> str:
    return f"{value:.0f}"


def format_temp(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value))


def min_max(values: Sequence[float]) -> Optional[Tuple[float, float]]:
    """Extremes computed locally; supplied highs/lows are never trusted for scaling."""
    if not values:
        return None
    return min(values), max(values)
