"""
Tests for the PostHog analytics client.

HTTP calls are mocked at requests.post.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from vibechecc.analytics import AnalyticsClient


@pytest.fixture
def client():
    return AnalyticsClient(api_key="phc_test", host="https://posthog.test/", timeout=5)


def ok_response(payload=None):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = payload or {}
    return response


class TestCapture:

    def test_disabled_without_key(self):
        client = AnalyticsClient(api_key="")
        with patch("vibechecc.analytics.requests.post") as mock_post:
            assert client.capture("user_1", "vibe_created") is False
            mock_post.assert_not_called()
        assert not client.enabled

    def test_requires_distinct_id(self, client):
        with patch("vibechecc.analytics.requests.post") as mock_post:
            assert client.capture(None, "vibe_created") is False
            mock_post.assert_not_called()

    def test_posts_event(self, client):
        with patch("vibechecc.analytics.requests.post", return_value=ok_response()) as mock_post:
            assert client.capture("user_1", "vibe_created", {"vibe_id": "v1"}) is True

        url = mock_post.call_args[0][0]
        body = mock_post.call_args[1]["json"]
        assert url == "https://posthog.test/capture/"
        assert body["api_key"] == "phc_test"
        assert body["event"] == "vibe_created"
        assert body["distinct_id"] == "user_1"
        assert body["properties"] == {"vibe_id": "v1"}
        assert "timestamp" in body
        assert mock_post.call_args[1]["timeout"] == 5

    def test_failure_is_logged_not_raised(self, client, capsys):
        with patch("vibechecc.analytics.requests.post", side_effect=requests.ConnectionError("down")):
            assert client.capture("user_1", "vibe_created") is False
        assert "[analytics] Failed to capture vibe_created" in capsys.readouterr().out

    def test_identify(self, client):
        with patch("vibechecc.analytics.requests.post", return_value=ok_response()) as mock_post:
            client.identify("user_1", {"username": "ada"})

        body = mock_post.call_args[1]["json"]
        assert body["event"] == "$identify"
        assert body["properties"] == {"$set": {"username": "ada"}}


class TestFeatureFlags:

    def test_flags(self, client):
        payload = {"featureFlags": {"dev-environment-access": True, "beta": "variant-a", "off": False}}
        with patch("vibechecc.analytics.requests.post", return_value=ok_response(payload)) as mock_post:
            flags = client.get_feature_flags("user_1")

        assert flags["beta"] == "variant-a"
        assert mock_post.call_args[0][0] == "https://posthog.test/decide/?v=3"

    def test_is_feature_enabled(self, client):
        payload = {"featureFlags": {"on": True, "variant": "a", "off": False}}
        with patch("vibechecc.analytics.requests.post", return_value=ok_response(payload)):
            assert client.is_feature_enabled("on", "user_1")
            assert client.is_feature_enabled("variant", "user_1")
            assert not client.is_feature_enabled("off", "user_1")
            assert not client.is_feature_enabled("missing", "user_1")

    def test_flags_failure_reads_as_disabled(self, client, capsys):
        with patch("vibechecc.analytics.requests.post", side_effect=requests.Timeout("slow")):
            assert client.get_feature_flags("user_1") == {}
        assert "Failed to load feature flags" in capsys.readouterr().out

    def test_flags_disabled(self):
        assert AnalyticsClient(api_key="").get_feature_flags("user_1") == {}
