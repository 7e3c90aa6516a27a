"""
Product analytics and feature flags via PostHog's HTTP API.

PostHog API Documentation: https://posthog.com/docs/api

The client is a no-op when POSTHOG_API_KEY is not set: capture does
nothing and every feature flag reads as disabled.
"""

from typing import Any, Dict, Optional

import requests

from vibechecc.config import POSTHOG_API_KEY, POSTHOG_HOST, REQUEST_TIMEOUT
from vibechecc.utils.dates import utcnow


class AnalyticsClient:
    """
    Minimal PostHog client.

    Configuration is pulled from vibechecc.config unless passed in:
    - POSTHOG_API_KEY: project API key
    - POSTHOG_HOST: ingestion host
    """

    def __init__(self, api_key: str = None, host: str = None, timeout: int = None):
        self.api_key = api_key if api_key is not None else POSTHOG_API_KEY
        self.host = (host if host is not None else POSTHOG_HOST).rstrip("/")
        self.timeout = timeout if timeout is not None else REQUEST_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def capture(
        self,
        distinct_id: Optional[str],
        event: str,
        properties: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send one event. Failures are logged and swallowed.

        Returns:
            True if PostHog accepted the event.
        """
        if not self.enabled or not distinct_id:
            return False

        payload = {
            "api_key": self.api_key,
            "event": event,
            "distinct_id": distinct_id,
            "properties": properties or {},
            "timestamp": utcnow().isoformat(),
        }
        try:
            response = requests.post(f"{self.host}/capture/", json=payload, timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            print(f"[analytics] Failed to capture {event}: {e}")
            return False

    def identify(self, distinct_id: str, properties: Optional[Dict[str, Any]] = None) -> bool:
        """Set person properties for a user."""
        return self.capture(distinct_id, "$identify", {"$set": properties or {}})

    def get_feature_flags(self, distinct_id: str) -> Dict[str, Any]:
        """
        Evaluate all feature flags for a user.

        Returns:
            Flag key -> value (True/False or a variant string). Empty on
            failure or when disabled.
        """
        if not self.enabled or not distinct_id:
            return {}

        try:
            response = requests.post(
                f"{self.host}/decide/?v=3",
                json={"api_key": self.api_key, "distinct_id": distinct_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json().get("featureFlags") or {}
        except (requests.RequestException, ValueError) as e:
            print(f"[analytics] Failed to load feature flags: {e}")
            return {}

    def is_feature_enabled(self, flag: str, distinct_id: Optional[str]) -> bool:
        """True if the flag is on (any truthy value or variant) for the user."""
        return bool(self.get_feature_flags(distinct_id).get(flag))
