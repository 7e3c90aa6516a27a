"""
Utility helpers: dates and pagination.
"""

from vibechecc.utils.dates import (
    utcnow,
    parse_datetime,
    to_iso,
    format_distance_to_now,
    format_date,
)
from vibechecc.utils.pagination import DEFAULT_LIMIT, MAX_LIMIT, clamp_limit

__all__ = [
    "utcnow",
    "parse_datetime",
    "to_iso",
    "format_distance_to_now",
    "format_date",
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "clamp_limit",
]
