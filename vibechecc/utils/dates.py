"""
Date helpers shared across models, services and the web layer.

All timestamps in vibechecc are timezone-aware UTC datetimes. Storage keeps
them as ISO-8601 strings; the identity provider sends epoch milliseconds.
"""

from datetime import datetime, timezone
from typing import Optional, Union

MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Union[str, int, float, datetime, None]) -> Optional[datetime]:
    """
    Convert a stored or incoming timestamp to an aware UTC datetime.

    Accepts ISO-8601 strings (with or without "Z"), epoch milliseconds,
    and datetimes. Naive datetimes are assumed to be UTC.

    Returns:
        datetime, or None for empty/unparseable input.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a datetime, None passes through."""
    if value is None:
        return None
    return value.isoformat()


def format_distance_to_now(
    value: datetime,
    add_suffix: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """
    Human-readable distance between a datetime and now.

    Examples: "3 hours", "2 days ago", "in 1 week".

    Args:
        value: The datetime to describe.
        add_suffix: Append "ago" / prepend "in".
        now: Reference time (for testing). Defaults to utcnow().
    """
    now = now or utcnow()
    value = parse_datetime(value)
    diff_seconds = (now - value).total_seconds()
    is_past = diff_seconds > 0

    seconds = int(abs(diff_seconds))
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30
    years = days // 365

    for amount, unit in (
        (years, "year"),
        (months, "month"),
        (weeks, "week"),
        (days, "day"),
        (hours, "hour"),
        (minutes, "minute"),
    ):
        if amount > 0:
            result = f"{amount} {unit}{'s' if amount > 1 else ''}"
            break
    else:
        result = "less than a minute"

    if add_suffix:
        return f"{result} ago" if is_past else f"in {result}"
    return result


def format_date(value: Union[datetime, str, None]) -> str:
    """Format a datetime for display ("Dec 25, 2025")."""
    if not value:
        return "Unknown"
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            return value
        value = parsed
    return f"{MONTH_NAMES[value.month - 1]} {value.day:02d}, {value.year}"
