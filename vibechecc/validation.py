"""
Input validation and per-user rate limiting.

All validators raise ValidationError with a message that is safe to show
to the caller, and return the cleaned value.
"""

import math
import re
import threading
import time
from typing import Dict, List, Optional, Pattern
from urllib.parse import urlparse

from vibechecc.errors import RateLimitError, ValidationError

# Latin letters (including accented), digits, underscore and hyphen
USERNAME_PATTERN = re.compile(r"^[A-Za-zÀ-ɏ0-9_-]+$")
TAG_PATTERN = re.compile(r"^[a-zA-Z0-9\s-]+$")

MAX_TAGS = 10

RESERVED_USERNAMES = ("admin", "root", "api", "www", "app", "support")


def validate_string(
    value: Optional[str],
    min_length: int = 0,
    max_length: int = 1000,
    pattern: Optional[Pattern] = None,
    required: bool = False,
    field_name: str = "Field",
) -> Optional[str]:
    """
    Validate a string against length and pattern constraints.

    Args:
        value: Raw input.
        min_length: Minimum length (checked before trimming).
        max_length: Maximum length.
        pattern: Compiled regex the whole value must match.
        required: Raise when empty instead of returning None.
        field_name: Used in error messages.

    Returns:
        The trimmed string, or None for empty optional input.

    Raises:
        ValidationError: If any constraint fails.
    """
    if not value:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if "\0" in value:
        raise ValidationError(f"{field_name} contains invalid characters")

    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters long")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be no more than {max_length} characters long")

    if pattern is not None and not pattern.match(value):
        raise ValidationError(f"{field_name} format is invalid")

    return value.strip()


def validate_username(username: Optional[str]) -> Optional[str]:
    username = validate_string(
        username, min_length=3, max_length=30, pattern=USERNAME_PATTERN, field_name="Username"
    )
    if username is not None and username.lower() in RESERVED_USERNAMES:
        raise ValidationError("This username is reserved")
    return username


def validate_bio(bio: Optional[str]) -> Optional[str]:
    return validate_string(bio, max_length=500, field_name="Bio")


def validate_vibe_title(title: Optional[str]) -> str:
    return validate_string(title, min_length=1, max_length=100, required=True, field_name="Vibe title")


def validate_vibe_description(description: Optional[str]) -> str:
    return validate_string(
        description, min_length=1, max_length=1000, required=True, field_name="Vibe description"
    )


def validate_review(review: Optional[str]) -> str:
    return validate_string(review, min_length=1, max_length=500, required=True, field_name="Review")


def validate_emoji(emoji: Optional[str]) -> str:
    return validate_string(emoji, min_length=1, max_length=10, required=True, field_name="Emoji")


def validate_rating(value) -> int:
    """Ratings are whole numbers from 1 to 5. Floats like 4.0 are accepted."""
    if isinstance(value, bool):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or not (1 <= value <= 5):
        raise ValidationError("Rating must be an integer between 1 and 5")
    return value


def validate_tags(tags: Optional[List[str]]) -> List[str]:
    """
    Validate a list of tags and return them lowercased.

    At most MAX_TAGS tags; each 1-30 characters of letters, digits,
    spaces or hyphens.
    """
    if not tags:
        return []

    if not isinstance(tags, list):
        raise ValidationError("Tags must be an array")

    if len(tags) > MAX_TAGS:
        raise ValidationError(f"Maximum {MAX_TAGS} tags allowed")

    return [
        validate_string(
            tag,
            min_length=1,
            max_length=30,
            pattern=TAG_PATTERN,
            required=True,
            field_name=f"Tag {index + 1}",
        ).lower()
        for index, tag in enumerate(tags)
    ]


def validate_url(url: Optional[str]) -> Optional[str]:
    """Optional http(s) URL of at most 500 characters."""
    validated = validate_string(url, max_length=500, field_name="URL")
    if not validated:
        return None

    parsed = urlparse(validated)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid URL format")

    return validated


# =============================================================================
# Rate limiting
# =============================================================================

# action -> (max requests, window seconds)
RATE_LIMITS: Dict[str, tuple] = {
    "create_vibe": (5, 300),
    "add_rating": (20, 300),
}


class RateLimiter:
    """
    In-memory sliding window rate limiter keyed by (user, action).

    Suitable for a single process. Each check records the attempt when it
    is allowed.
    """

    def __init__(self, limits: Optional[Dict[str, tuple]] = None, clock=time.time):
        self.limits = dict(RATE_LIMITS if limits is None else limits)
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def check(
        self,
        user_id: str,
        action: str,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ) -> None:
        """
        Record an attempt, or raise if the user is over the limit.

        Raises:
            RateLimitError: With the number of seconds until a slot frees up.
        """
        default_max, default_window = self.limits.get(action, (10, 60))
        max_requests = max_requests if max_requests is not None else default_max
        window_seconds = window_seconds if window_seconds is not None else default_window

        key = f"{user_id}:{action}"
        now = self._clock()
        window_start = now - window_seconds

        with self._lock:
            hits = [t for t in self._hits.get(key, []) if t > window_start]

            if len(hits) >= max_requests:
                retry_after = math.ceil(min(hits) + window_seconds - now)
                self._hits[key] = hits
                raise RateLimitError(
                    f"Rate limit exceeded for {action}. Too many requests. "
                    f"Try again in {retry_after} seconds.",
                    retry_after=retry_after,
                )

            hits.append(now)
            self._hits[key] = hits

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
