"""
Base storage abstraction for vibechecc.

Defines the abstract document-store interface that all storage backends
must implement. Records are plain dicts of fields; the backend-assigned
record id is returned under the ``_id`` key.
"""

import base64
import binascii
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from vibechecc.errors import NotFoundError, ValidationError

# Tables used by the application
USERS = "users"
VIBES = "vibes"
RATINGS = "ratings"
RATING_LIKES = "rating_likes"
REACTIONS = "reactions"
FOLLOWS = "follows"
NOTIFICATIONS = "notifications"
TAGS = "tags"

TABLES = (USERS, VIBES, RATINGS, RATING_LIKES, REACTIONS, FOLLOWS, NOTIFICATIONS, TAGS)

# Check-then-write sequences on the same key share one of these locks
_LOCK_STRIPES = 64
_STRIPED_LOCKS = [threading.Lock() for _ in range(_LOCK_STRIPES)]


def key_lock(table: str, key: Dict[str, Any]) -> threading.Lock:
    """Return the lock guarding writes to one logical key of a table."""
    return _STRIPED_LOCKS[hash((table, tuple(sorted(key.items())))) % _LOCK_STRIPES]


@dataclass
class Page:
    """
    One page of a cursor-paginated query.

    Attributes:
        items: Records on this page.
        continue_cursor: Opaque cursor for the next page (None when done).
        is_done: True when there are no more records.
    """
    items: List[Dict[str, Any]] = field(default_factory=list)
    continue_cursor: Optional[str] = None
    is_done: bool = True

    def __len__(self) -> int:
        return len(self.items)


def encode_cursor(offset: int) -> str:
    """Encode a result offset as an opaque cursor string."""
    return base64.urlsafe_b64encode(f"o:{offset}".encode()).decode().rstrip("=")


def decode_cursor(cursor: Optional[str]) -> int:
    """
    Decode a cursor produced by encode_cursor.

    Raises:
        ValidationError: If the cursor is malformed.
    """
    if not cursor:
        return 0
    if not isinstance(cursor, str):
        raise ValidationError("Invalid pagination cursor")
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
        prefix, _, value = raw.partition(":")
        offset = int(value)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid pagination cursor")
    if prefix != "o" or offset < 0:
        raise ValidationError("Invalid pagination cursor")
    return offset


class Storage(ABC):
    """
    Abstract base class for all storage backends.

    Implementations must provide:
    - Single-record insert/get/update/delete by record id
    - Listing with equality filters, one sort field and a limit

    Counting, single-record lookup by filter and cursor pagination are
    built on top of list_records and may be overridden for efficiency.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the name of this storage backend.

        Used for logging and debugging.
        """
        pass

    @abstractmethod
    def insert(self, table: str, fields: Dict[str, Any]) -> str:
        """
        Insert a new record.

        Args:
            table: Table name (see TABLES).
            fields: Field values to store.

        Returns:
            The new record id.
        """
        pass

    @abstractmethod
    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a record by id.

        Returns:
            Record dict with ``_id``, or None if it does not exist.
        """
        pass

    @abstractmethod
    def update(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Patch the given fields on an existing record.

        Returns:
            The updated record.

        Raises:
            NotFoundError: If the record does not exist.
        """
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted, False if it did not exist.
        """
        pass

    @abstractmethod
    def list_records(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_field: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        List records matching all equality filters.

        Args:
            table: Table name.
            filters: Field -> required value. Records missing the field
                never match.
            sort_field: Field to order by (records lacking it sort last).
            descending: Sort direction.
            limit: Maximum number of records.

        Returns:
            List of record dicts.
        """
        pass

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first record matching the filters, or None."""
        records = self.list_records(table, filters=filters, limit=1)
        return records[0] if records else None

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching the filters."""
        return len(self.list_records(table, filters=filters))

    def insert_unique(
        self, table: str, unique_filters: Dict[str, Any], fields: Dict[str, Any]
    ) -> Tuple[str, bool]:
        """
        Insert a record unless one already matches unique_filters.

        The lookup and the insert run under one lock per key, so
        concurrent callers in this process never both insert.

        Returns:
            (record_id, created). When a match exists its id is returned
            with created=False and nothing is written.
        """
        with key_lock(table, unique_filters):
            existing = self.find_one(table, unique_filters)
            if existing is not None:
                return existing["_id"], False
            return self.insert(table, fields), True

    def increment(self, table: str, record_id: str, field_name: str, delta: int, floor: int = 0) -> int:
        """
        Add delta to a numeric field, never going below floor.

        Returns:
            The new value.

        Raises:
            NotFoundError: If the record does not exist.
        """
        with key_lock(table, {"_id": record_id, "_field": field_name}):
            record = self.get(table, record_id)
            if record is None:
                raise NotFoundError(f"Record {record_id} not found in {table}")
            value = max(floor, (record.get(field_name) or 0) + delta)
            self.update(table, record_id, {field_name: value})
            return value

    def paginate(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_field: Optional[str] = "created_at",
        descending: bool = True,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> Page:
        """
        Fetch one page of records.

        Args:
            cursor: Value of a previous Page.continue_cursor, or None for
                the first page.
            limit: Page size.

        Raises:
            ValidationError: If the cursor is malformed.
        """
        offset = decode_cursor(cursor)
        records = self.list_records(
            table,
            filters=filters,
            sort_field=sort_field,
            descending=descending,
            limit=offset + limit + 1,
        )
        items = records[offset:offset + limit]
        is_done = len(records) <= offset + limit
        return Page(
            items=items,
            continue_cursor=None if is_done else encode_cursor(offset + limit),
            is_done=is_done,
        )

    def __str__(self) -> str:
        return f"Storage({self.name})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def paginate_list(items: List[Any], cursor: Optional[str], limit: int) -> tuple:
    """
    Apply the same cursor scheme to an already-built in-memory list.

    Used where results are filtered or scored in Python after loading.

    Returns:
        (page_items, continue_cursor, is_done)
    """
    offset = decode_cursor(cursor)
    page_items = items[offset:offset + limit]
    is_done = len(items) <= offset + limit
    return page_items, None if is_done else encode_cursor(offset + limit), is_done
