"""Shared validation and coercion utilities"""

import math
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the store's convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Aware datetimes are converted to UTC and stripped of tzinfo so they compare
    cleanly against values read from the database.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (a trailing 'Z' is accepted) or pass through a datetime.

    Returns:
        Naive UTC datetime, or None when the value is empty or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def coerce_number(value: Any) -> Optional[float]:
    """Convert a numeric-looking value to float; None for missing, NaN or garbage"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_status(value: Any) -> Optional[str]:
    """Lowercase and strip a status string; None when empty"""
    if value is None:
        return None
    status = str(value).strip().lower()
    return status or None
