"""
Tests for the storage abstraction and the in-memory backend.

Tests the Storage interface contract, filtering/sorting semantics,
cursor pagination and record isolation.
"""

import threading
import time

import pytest
from unittest.mock import patch

from vibechecc.errors import NotFoundError, ValidationError
from vibechecc.storage import (
    MemoryStorage,
    Page,
    Storage,
    decode_cursor,
    encode_cursor,
    get_storage,
    paginate_list,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def populated(storage):
    """Five vibes with increasing created_at and one without a timestamp."""
    for i in range(5):
        storage.insert("vibes", {
            "title": f"Vibe {i}",
            "created_by_id": "u1" if i % 2 == 0 else "u2",
            "created_at": f"2025-12-0{i + 1}T00:00:00+00:00",
            "visibility": "public",
        })
    storage.insert("vibes", {"title": "Undated", "created_by_id": "u1", "visibility": "public"})
    return storage


# =============================================================================
# Interface Tests
# =============================================================================

class TestStorageInterface:
    """Tests for the abstract Storage base class."""

    def test_storage_is_abstract(self):
        with pytest.raises(TypeError):
            Storage()

    def test_incomplete_storage_cannot_be_instantiated(self):
        class IncompleteStorage(Storage):
            @property
            def name(self):
                return "incomplete"

        with pytest.raises(TypeError):
            IncompleteStorage()

    def test_memory_storage_is_storage(self, storage):
        assert isinstance(storage, Storage)
        assert storage.name == "memory"
        assert str(storage) == "Storage(memory)"

    def test_get_storage_falls_back_to_memory(self, capsys):
        """Without Airtable credentials the factory returns memory storage."""
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("vibechecc.storage.AIRTABLE_API_KEY", "")
            storage = get_storage()

        assert isinstance(storage, MemoryStorage)
        assert "using in-memory storage" in capsys.readouterr().out


# =============================================================================
# CRUD
# =============================================================================

class TestMemoryCrud:

    def test_insert_and_get(self, storage):
        record_id = storage.insert("users", {"external_id": "user_1"})
        record = storage.get("users", record_id)

        assert record == {"external_id": "user_1", "_id": record_id}

    def test_get_missing(self, storage):
        assert storage.get("users", "nope") is None

    def test_update_patches_fields(self, storage):
        record_id = storage.insert("users", {"external_id": "user_1", "bio": "old"})
        updated = storage.update("users", record_id, {"bio": "new"})

        assert updated["bio"] == "new"
        assert updated["external_id"] == "user_1"
        assert storage.get("users", record_id)["bio"] == "new"

    def test_update_missing_raises(self, storage):
        with pytest.raises(NotFoundError):
            storage.update("users", "nope", {"bio": "x"})

    def test_delete(self, storage):
        record_id = storage.insert("users", {"external_id": "user_1"})
        assert storage.delete("users", record_id) is True
        assert storage.delete("users", record_id) is False
        assert storage.table_size("users") == 0

    def test_records_are_isolated(self, storage):
        """Mutating returned or inserted dicts never changes stored data."""
        fields = {"tags": ["a"]}
        record_id = storage.insert("vibes", fields)
        fields["tags"].append("b")

        record = storage.get("vibes", record_id)
        record["tags"].append("c")

        assert storage.get("vibes", record_id)["tags"] == ["a"]

    def test_clear(self, populated):
        populated.clear()
        assert populated.table_size("vibes") == 0


# =============================================================================
# Listing
# =============================================================================

class TestMemoryListing:

    def test_filters_are_equality(self, populated):
        records = populated.list_records("vibes", filters={"created_by_id": "u2"})
        assert {r["title"] for r in records} == {"Vibe 1", "Vibe 3"}

    def test_missing_field_never_matches(self, storage):
        storage.insert("notifications", {"user_id": "u1"})
        storage.insert("notifications", {"user_id": "u1", "read": False})

        assert len(storage.list_records("notifications", filters={"read": False})) == 1

    def test_sort_descending_with_missing_last(self, populated):
        records = populated.list_records("vibes", sort_field="created_at")
        titles = [r["title"] for r in records]

        assert titles[:5] == ["Vibe 4", "Vibe 3", "Vibe 2", "Vibe 1", "Vibe 0"]
        assert titles[-1] == "Undated"

    def test_sort_ascending(self, populated):
        records = populated.list_records("vibes", sort_field="created_at", descending=False)
        assert records[0]["title"] == "Vibe 0"
        assert records[-1]["title"] == "Undated"

    def test_limit(self, populated):
        assert len(populated.list_records("vibes", limit=2)) == 2

    def test_find_one_and_count(self, populated):
        assert populated.find_one("vibes", {"title": "Vibe 2"})["created_by_id"] == "u1"
        assert populated.find_one("vibes", {"title": "missing"}) is None
        assert populated.count("vibes", {"created_by_id": "u1"}) == 4
        assert populated.count("vibes") == 6


# =============================================================================
# Atomic Writes
# =============================================================================

def slow_find_one(storage, delay=0.05):
    """Wrap storage.find_one so a lookup leaves room for another thread."""
    original = storage.find_one

    def wrapper(*args, **kwargs):
        time.sleep(delay)
        return original(*args, **kwargs)

    return wrapper


def run_in_threads(target, count=2):
    threads = [threading.Thread(target=target) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


class TestInsertUnique:

    def test_inserts_once(self, storage):
        first_id, created = storage.insert_unique("follows", {"a": "1", "b": "2"}, {"a": "1", "b": "2"})
        second_id, created_again = storage.insert_unique("follows", {"a": "1", "b": "2"}, {"a": "1", "b": "2"})

        assert created is True
        assert created_again is False
        assert second_id == first_id
        assert storage.count("follows") == 1

    def test_concurrent_callers_insert_once(self, storage):
        """
        GIVEN: Two threads inserting the same key with a slow lookup
        WHEN: Both run at once
        THEN: Exactly one record exists and exactly one caller created it
        """
        outcomes = []
        fields = {"follower_id": "u1", "following_id": "u2"}

        with patch.object(storage, "find_one", side_effect=slow_find_one(storage)):
            run_in_threads(lambda: outcomes.append(storage.insert_unique("follows", fields, fields)[1]))

        assert storage.count("follows") == 1
        assert sorted(outcomes) == [False, True]

    def test_base_implementation_is_keyed(self, storage):
        outcomes = []
        fields = {"vibe_id": "v1", "user_id": "u1"}

        with patch.object(storage, "find_one", side_effect=slow_find_one(storage)):
            run_in_threads(
                lambda: outcomes.append(Storage.insert_unique(storage, "ratings", fields, fields)[1])
            )

        assert storage.count("ratings") == 1
        assert sorted(outcomes) == [False, True]


class TestIncrement:

    def test_increment_and_floor(self, storage):
        record_id = storage.insert("users", {"follower_count": 1})

        assert storage.increment("users", record_id, "follower_count", 2) == 3
        assert storage.increment("users", record_id, "follower_count", -5) == 0
        assert storage.get("users", record_id)["follower_count"] == 0

    def test_missing_field_starts_at_zero(self, storage):
        record_id = storage.insert("tags", {"name": "cozy"})
        assert storage.increment("tags", record_id, "count", 1) == 1

    def test_missing_record(self, storage):
        with pytest.raises(NotFoundError):
            storage.increment("users", "nope", "follower_count", 1)
        with pytest.raises(NotFoundError):
            Storage.increment(storage, "users", "nope", "follower_count", 1)

    def test_base_implementation_counts_every_call(self, storage):
        record_id = storage.insert("tags", {"name": "cozy", "count": 0})

        run_in_threads(lambda: Storage.increment(storage, "tags", record_id, "count", 1), count=8)

        assert storage.get("tags", record_id)["count"] == 8


# =============================================================================
# Pagination
# =============================================================================

class TestCursors:

    def test_round_trip(self):
        assert decode_cursor(encode_cursor(40)) == 40

    def test_empty_cursor_is_start(self):
        assert decode_cursor(None) == 0
        assert decode_cursor("") == 0

    def test_cursor_is_opaque(self):
        assert "40" not in encode_cursor(40)

    @pytest.mark.parametrize("cursor", ["!!!", "bm9wZQ", encode_cursor(-1)])
    def test_malformed_cursor(self, cursor):
        with pytest.raises(ValidationError, match="Invalid pagination cursor"):
            decode_cursor(cursor)


class TestPaginate:

    def test_walks_all_pages(self, populated):
        seen = []
        cursor = None
        pages = 0
        while True:
            page = populated.paginate("vibes", cursor=cursor, limit=4)
            pages += 1
            seen.extend(r["title"] for r in page.items)
            if page.is_done:
                assert page.continue_cursor is None
                break
            cursor = page.continue_cursor

        assert pages == 2
        assert len(seen) == 6
        assert len(set(seen)) == 6

    def test_exact_fit_is_done(self, populated):
        page = populated.paginate("vibes", limit=6)
        assert len(page) == 6
        assert page.is_done

    def test_filtered_page(self, populated):
        page = populated.paginate("vibes", filters={"created_by_id": "u2"}, limit=1)
        assert page.items[0]["title"] == "Vibe 3"
        assert not page.is_done

    def test_empty_page_defaults(self):
        page = Page()
        assert page.items == []
        assert page.is_done

    def test_paginate_list(self):
        items = list(range(5))
        first, cursor, done = paginate_list(items, None, 3)
        assert first == [0, 1, 2]
        assert not done

        second, cursor, done = paginate_list(items, cursor, 3)
        assert second == [3, 4]
        assert done
        assert cursor is None
