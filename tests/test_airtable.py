"""
Tests for the Airtable storage backend.

All HTTP calls are mocked at requests.request; no network access.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from vibechecc.errors import NotFoundError, StorageError
from vibechecc.storage.airtable import (
    AirtableStorage,
    build_filter_formula,
    escape_formula_string,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def airtable_storage():
    """AirtableStorage with test credentials."""
    return AirtableStorage(api_key="test_key", base_id="appTEST")


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip the client-side rate limit delay."""
    with patch("vibechecc.storage.airtable.time.sleep"):
        yield


def make_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


# =============================================================================
# Formula building
# =============================================================================

class TestFilterFormula:

    def test_no_filters(self):
        assert build_filter_formula(None) is None
        assert build_filter_formula({}) is None

    def test_string_and_bool(self):
        formula = build_filter_formula({"user_id": "u1", "read": False})
        assert formula == "AND({user_id}='u1',{read}=FALSE())"

    def test_true_none_and_numbers(self):
        formula = build_filter_formula({"flagged": True, "image": None, "value": 5})
        assert formula == "AND({flagged}=TRUE(),{image}=BLANK(),{value}=5)"

    def test_quotes_escaped(self):
        assert escape_formula_string("it's") == "it\\'s"
        assert build_filter_formula({"username": "o'neil"}) == "AND({username}='o\\'neil')"


# =============================================================================
# Serialization
# =============================================================================

class TestSerialization:

    def test_encode_json_fields(self):
        encoded = AirtableStorage.encode_fields({
            "_id": "rec1",
            "title": "t",
            "tags": ["a", "b"],
            "metadata": {"emoji": "🔥"},
        })

        assert "_id" not in encoded
        assert encoded["title"] == "t"
        assert json.loads(encoded["tags"]) == ["a", "b"]
        assert json.loads(encoded["metadata"]) == {"emoji": "🔥"}

    def test_decode_record(self):
        record = AirtableStorage.decode_record({
            "id": "rec1",
            "fields": {"title": "t", "tags": '["a"]', "interests": "not json"},
        })

        assert record == {"_id": "rec1", "title": "t", "tags": ["a"], "interests": "not json"}

    def test_decode_record_without_fields(self):
        assert AirtableStorage.decode_record({"id": "rec1"}) == {"_id": "rec1"}


# =============================================================================
# API calls
# =============================================================================

class TestAirtableAPICalls:

    def test_insert(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(200, {"id": "recNEW", "fields": {}})

            record_id = airtable_storage.insert("vibes", {"title": "t", "tags": ["a"]})

        assert record_id == "recNEW"
        method, url = mock_request.call_args[0]
        assert method == "POST"
        assert url == "https://api.airtable.com/v0/appTEST/vibes"
        body = mock_request.call_args[1]["json"]
        assert body["typecast"] is True
        assert body["fields"]["tags"] == '["a"]'
        assert mock_request.call_args[1]["headers"]["Authorization"] == "Bearer test_key"

    def test_get_found(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(200, {"id": "rec1", "fields": {"title": "t"}})
            record = airtable_storage.get("vibes", "rec1")

        assert record == {"_id": "rec1", "title": "t"}
        assert mock_request.call_args[0][1].endswith("/vibes/rec1")

    def test_get_not_found(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(404)
            assert airtable_storage.get("vibes", "nope") is None

    def test_update_not_found(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(404)
            with pytest.raises(NotFoundError):
                airtable_storage.update("vibes", "nope", {"title": "x"})

    def test_update_uses_patch(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(200, {"id": "rec1", "fields": {"title": "x"}})
            record = airtable_storage.update("vibes", "rec1", {"title": "x"})

        assert mock_request.call_args[0][0] == "PATCH"
        assert record["title"] == "x"

    def test_delete(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(200, {"id": "rec1", "deleted": True})
            assert airtable_storage.delete("vibes", "rec1") is True

            mock_request.return_value = make_response(404)
            assert airtable_storage.delete("vibes", "rec1") is False

    def test_list_sends_query_params(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(200, {"records": []})
            airtable_storage.list_records(
                "ratings", filters={"vibe_id": "v1"}, sort_field="created_at", limit=5
            )

        params = mock_request.call_args[1]["params"]
        assert params["filterByFormula"] == "AND({vibe_id}='v1')"
        assert params["sort[0][field]"] == "created_at"
        assert params["sort[0][direction]"] == "desc"
        assert params["maxRecords"] == 5
        assert params["pageSize"] == 100

    def test_list_follows_offsets(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.side_effect = [
                make_response(200, {"records": [{"id": "r1", "fields": {}}], "offset": "itr1"}),
                make_response(200, {"records": [{"id": "r2", "fields": {}}]}),
            ]
            records = airtable_storage.list_records("tags")

        assert [r["_id"] for r in records] == ["r1", "r2"]
        assert mock_request.call_count == 2

    def test_list_stops_at_limit(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(
                200, {"records": [{"id": "r1", "fields": {}}, {"id": "r2", "fields": {}}], "offset": "more"}
            )
            records = airtable_storage.list_records("tags", limit=2)

        assert len(records) == 2
        assert mock_request.call_count == 1


class TestAirtableErrors:

    def test_network_error(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.side_effect = requests.ConnectionError("down")
            with pytest.raises(StorageError, match="Airtable request failed"):
                airtable_storage.get("vibes", "rec1")

    def test_server_error(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(500)
            with pytest.raises(StorageError):
                airtable_storage.list_records("vibes")

    def test_missing_table_on_insert(self, airtable_storage):
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            mock_request.return_value = make_response(404)
            with pytest.raises(StorageError, match="table not found"):
                airtable_storage.insert("nope", {})

    def test_missing_credentials(self):
        storage = AirtableStorage(api_key="", base_id="appTEST")
        with patch("vibechecc.storage.airtable.requests.request") as mock_request:
            with pytest.raises(StorageError, match="AIRTABLE_API_KEY is not configured"):
                storage.get("vibes", "rec1")
            mock_request.assert_not_called()

    def test_storage_error_status(self):
        assert StorageError("x").status_code == 502
