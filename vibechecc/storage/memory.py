"""
In-memory storage for tests and local development.

Data is stored in memory and lost when the process ends.
"""

import copy
import threading
import uuid
from typing import Any, Dict, List, Optional, Tuple

from vibechecc.errors import NotFoundError
from vibechecc.storage.base import Storage


class MemoryStorage(Storage):
    """
    Dict-of-dicts document store.

    Use this when Airtable is not configured or for testing. Records are
    copied on the way in and out so callers never share state with the
    store.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return "memory"

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    @staticmethod
    def _with_id(record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        record = copy.deepcopy(fields)
        record["_id"] = record_id
        return record

    def insert(self, table: str, fields: Dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        with self._lock:
            stored = copy.deepcopy(fields)
            stored.pop("_id", None)
            self._table(table)[record_id] = stored
        return record_id

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            fields = self._table(table).get(record_id)
            if fields is None:
                return None
            return self._with_id(record_id, fields)

    def update(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            existing = self._table(table).get(record_id)
            if existing is None:
                raise NotFoundError(f"Record {record_id} not found in {table}")
            patch = copy.deepcopy(fields)
            patch.pop("_id", None)
            existing.update(patch)
            return self._with_id(record_id, existing)

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def list_records(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_field: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        filters = filters or {}
        with self._lock:
            records = [
                self._with_id(record_id, fields)
                for record_id, fields in self._table(table).items()
                if all(k in fields and fields[k] == v for k, v in filters.items())
            ]

        if sort_field:
            present = [r for r in records if r.get(sort_field) is not None]
            missing = [r for r in records if r.get(sort_field) is None]
            present.sort(key=lambda r: r[sort_field], reverse=descending)
            records = present + missing

        if limit is not None:
            records = records[:limit]
        return records

    def insert_unique(
        self, table: str, unique_filters: Dict[str, Any], fields: Dict[str, Any]
    ) -> Tuple[str, bool]:
        with self._lock:
            existing = self.find_one(table, unique_filters)
            if existing is not None:
                return existing["_id"], False
            return self.insert(table, fields), True

    def increment(self, table: str, record_id: str, field_name: str, delta: int, floor: int = 0) -> int:
        with self._lock:
            existing = self._table(table).get(record_id)
            if existing is None:
                raise NotFoundError(f"Record {record_id} not found in {table}")
            existing[field_name] = max(floor, (existing.get(field_name) or 0) + delta)
            return existing[field_name]

    def clear(self) -> None:
        """Clear all tables (for testing)."""
        with self._lock:
            self._tables.clear()

    def table_size(self, table: str) -> int:
        """Return number of stored records in a table (for testing)."""
        return len(self._table(table))
