"""
Storage module.

Handles persistence of users, vibes, ratings and the rest via Airtable or
an in-memory store.
"""

from vibechecc.config import AIRTABLE_API_KEY, AIRTABLE_BASE_ID
from vibechecc.storage.base import (
    Storage,
    Page,
    encode_cursor,
    decode_cursor,
    paginate_list,
    TABLES,
    USERS,
    VIBES,
    RATINGS,
    RATING_LIKES,
    REACTIONS,
    FOLLOWS,
    NOTIFICATIONS,
    TAGS,
)
from vibechecc.storage.memory import MemoryStorage
from vibechecc.storage.airtable import AirtableStorage


def get_storage() -> Storage:
    """Airtable when configured, otherwise an in-memory store."""
    if AIRTABLE_API_KEY and AIRTABLE_BASE_ID:
        return AirtableStorage()
    print("[storage] Airtable not configured, using in-memory storage")
    return MemoryStorage()


__all__ = [
    "Storage",
    "Page",
    "encode_cursor",
    "decode_cursor",
    "paginate_list",
    "TABLES",
    "USERS",
    "VIBES",
    "RATINGS",
    "RATING_LIKES",
    "REACTIONS",
    "FOLLOWS",
    "NOTIFICATIONS",
    "TAGS",
    "MemoryStorage",
    "AirtableStorage",
    "get_storage",
]
