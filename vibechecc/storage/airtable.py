"""
Airtable storage backend for vibechecc.

Implements the Storage interface using Airtable as the managed document
store. Uses the Airtable REST API for all operations.

Airtable API Documentation: https://airtable.com/developers/web/api/introduction

=============================================================================
AIRTABLE SCHEMA
=============================================================================

One table per entity, named exactly as the storage table constant
(users, vibes, ratings, rating_likes, reactions, follows, notifications,
tags). Each
table has one column per model field:

| Field kind         | Airtable field type | Notes                              |
|--------------------|---------------------|------------------------------------|
| ids, text          | Single line text    | external_id, vibe_id, emoji, ...   |
| long text          | Long text           | description, review, bio           |
| counters, value    | Number (integer)    | count, value, follower_count       |
| flags              | Checkbox            | read, flagged, suspended, ...      |
| datetimes          | Single line text    | ISO-8601 UTC strings               |
| tags, interests,   | Long text           | JSON-encoded (see JSON_FIELDS)     |
| socials, metadata  |                     |                                    |

Airtable omits empty and unchecked fields from responses; model defaults
fill them back in on load.

=============================================================================
"""

import json
import time
from typing import Any, Dict, List, Optional

import requests

from vibechecc.config import (
    AIRTABLE_API_KEY,
    AIRTABLE_BASE_ID,
    REQUEST_TIMEOUT,
)
from vibechecc.errors import NotFoundError, StorageError
from vibechecc.storage.base import Storage

# Fields holding lists/dicts, stored as JSON text
JSON_FIELDS = ("tags", "interests", "socials", "metadata")


def escape_formula_string(value: str) -> str:
    """Escape a string for use inside a single-quoted Airtable formula literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_filter_formula(filters: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Build a filterByFormula expression from equality filters.

    Examples:
        {"user_id": "u1"}                 -> "AND({user_id}='u1')"
        {"user_id": "u1", "read": False}  -> "AND({user_id}='u1',{read}=FALSE())"

    Returns:
        Formula string, or None when there are no filters.
    """
    if not filters:
        return None

    clauses = []
    for name, value in filters.items():
        if isinstance(value, bool):
            clauses.append(f"{{{name}}}={'TRUE()' if value else 'FALSE()'}")
        elif value is None:
            clauses.append(f"{{{name}}}=BLANK()")
        elif isinstance(value, (int, float)):
            clauses.append(f"{{{name}}}={value}")
        else:
            clauses.append(f"{{{name}}}='{escape_formula_string(str(value))}'")

    return f"AND({','.join(clauses)})"


class AirtableStorage(Storage):
    """
    Airtable-backed storage implementation.

    Configuration is pulled from environment variables via vibechecc.config:
    - AIRTABLE_API_KEY: API key for authentication
    - AIRTABLE_BASE_ID: Base ID (starts with "app")
    """

    # Airtable API base URL
    API_BASE = "https://api.airtable.com/v0"

    # Rate limiting: Airtable allows 5 requests per second
    REQUEST_DELAY = 0.25  # 250ms between requests to stay under limit

    # Airtable's maximum page size for list requests
    PAGE_SIZE = 100

    def __init__(
        self,
        api_key: str = None,
        base_id: str = None,
    ):
        """
        Initialize AirtableStorage.

        Args:
            api_key: Airtable API key. Defaults to config.AIRTABLE_API_KEY.
            base_id: Airtable base ID. Defaults to config.AIRTABLE_BASE_ID.
        """
        # Use provided values, or fall back to config if None (not empty string)
        self.api_key = api_key if api_key is not None else AIRTABLE_API_KEY
        self.base_id = base_id if base_id is not None else AIRTABLE_BASE_ID

        self._last_request_time = 0.0

    @property
    def name(self) -> str:
        return "airtable"

    def _table_url(self, table: str) -> str:
        """Construct the base URL for a table."""
        return f"{self.API_BASE}/{self.base_id}/{table}"

    @property
    def _headers(self) -> Dict[str, str]:
        """Construct headers for API requests."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self.REQUEST_DELAY:
            time.sleep(self.REQUEST_DELAY - elapsed)
        self._last_request_time = time.time()

    def _validate_config(self) -> None:
        """Validate that required configuration is present."""
        if not self.api_key:
            raise StorageError("AIRTABLE_API_KEY is not configured")
        if not self.base_id:
            raise StorageError("AIRTABLE_BASE_ID is not configured")

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send one rate-limited request.

        Raises:
            StorageError: On network errors and non-2xx responses other
                than 404 (callers decide what a 404 means).
        """
        self._validate_config()
        self._rate_limit()

        try:
            response = requests.request(
                method,
                url,
                headers=self._headers,
                timeout=REQUEST_TIMEOUT,
                **kwargs,
            )
        except requests.RequestException as e:
            raise StorageError(f"Airtable request failed: {e}")

        if response.status_code == 404:
            return response

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise StorageError(f"Airtable request failed: {e}")

        return response

    # =========================================================================
    # Serialization: record dict <-> Airtable fields
    # =========================================================================

    @staticmethod
    def encode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert record fields to Airtable field format.

        List/dict fields become JSON text; ``_id`` is dropped.
        """
        encoded = {}
        for key, value in fields.items():
            if key == "_id":
                continue
            if key in JSON_FIELDS and value is not None:
                value = json.dumps(value)
            encoded[key] = value
        return encoded

    @staticmethod
    def decode_record(record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert an Airtable record ({"id", "fields"}) to a record dict.

        JSON text fields that fail to parse are left as-is.
        """
        data = dict(record.get("fields", {}))
        for key in JSON_FIELDS:
            value = data.get(key)
            if isinstance(value, str):
                try:
                    data[key] = json.loads(value)
                except ValueError:
                    pass
        data["_id"] = record.get("id")
        return data

    # =========================================================================
    # Storage Interface Implementation
    # =========================================================================

    def insert(self, table: str, fields: Dict[str, Any]) -> str:
        response = self._request(
            "POST",
            self._table_url(table),
            json={"fields": self.encode_fields(fields), "typecast": True},
        )
        if response.status_code == 404:
            raise StorageError(f"Airtable table not found: {table}")
        return response.json()["id"]

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        response = self._request("GET", f"{self._table_url(table)}/{record_id}")
        if response.status_code == 404:
            return None
        return self.decode_record(response.json())

    def update(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request(
            "PATCH",
            f"{self._table_url(table)}/{record_id}",
            json={"fields": self.encode_fields(fields), "typecast": True},
        )
        if response.status_code == 404:
            raise NotFoundError(f"Record {record_id} not found in {table}")
        return self.decode_record(response.json())

    def delete(self, table: str, record_id: str) -> bool:
        response = self._request("DELETE", f"{self._table_url(table)}/{record_id}")
        if response.status_code == 404:
            return False
        return bool(response.json().get("deleted", True))

    def list_records(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_field: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        List records, following Airtable's offset paging until ``limit``
        records are collected or the table is exhausted.
        """
        params: Dict[str, Any] = {"pageSize": self.PAGE_SIZE}

        formula = build_filter_formula(filters)
        if formula:
            params["filterByFormula"] = formula

        if sort_field:
            params["sort[0][field]"] = sort_field
            params["sort[0][direction]"] = "desc" if descending else "asc"

        if limit is not None:
            params["maxRecords"] = limit

        records: List[Dict[str, Any]] = []
        while True:
            response = self._request("GET", self._table_url(table), params=params)
            if response.status_code == 404:
                raise StorageError(f"Airtable table not found: {table}")

            data = response.json()
            records.extend(self.decode_record(r) for r in data.get("records", []))

            offset = data.get("offset")
            if not offset or (limit is not None and len(records) >= limit):
                break
            params["offset"] = offset

        if limit is not None:
            records = records[:limit]
        return records
