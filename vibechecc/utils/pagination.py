"""
Pagination limits for list queries.
"""

from typing import Optional

from vibechecc.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

DEFAULT_LIMIT = DEFAULT_PAGE_SIZE
MAX_LIMIT = MAX_PAGE_SIZE


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """
    Coerce a client-provided page size into [1, maximum].

    None or non-numeric input falls back to ``default``.
    """
    if limit is None:
        return default
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, maximum))
