"""
Emoji ratings and reactions.

A rating is a 1-5 score attached to a vibe with an emoji and a review.
A reaction is a lighter emoji tally with no score.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class Rating(Entity):
    """
    One user's emoji rating of one vibe.

    Attributes:
        vibe_id: Rated vibe's record id.
        user_id: external_id of the rater.
        emoji: The emoji chosen for the rating.
        value: Integer score from 1 to 5.
        review: Free-text review.
        tags: Optional tags the rater attached.
        flagged: Set by moderation.
    """

    DATETIME_FIELDS = ("created_at", "updated_at")

    vibe_id: str
    user_id: str
    emoji: str
    value: int
    review: str = ""
    tags: List[str] = field(default_factory=list)
    flagged: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.vibe_id:
            errors.append("vibe_id is required")
        if not self.user_id:
            errors.append("user_id is required")
        if not self.emoji:
            errors.append("emoji is required")
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            errors.append(f"value must be an integer, got {self.value!r}")
        elif not (MIN_RATING <= self.value <= MAX_RATING):
            errors.append(f"value must be between {MIN_RATING} and {MAX_RATING}, got {self.value}")
        self._fail(errors)

    def __str__(self) -> str:
        return f"{self.emoji} {self.value}/5 on {self.vibe_id}"


@dataclass
class Reaction(Entity):
    """A single emoji reaction by a user on a vibe."""

    vibe_id: str
    user_id: str
    emoji: str
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.vibe_id:
            errors.append("vibe_id is required")
        if not self.user_id:
            errors.append("user_id is required")
        if not self.emoji:
            errors.append("emoji is required")
        self._fail(errors)


@dataclass
class RatingLike(Entity):
    """A user's like on someone else's rating."""

    rating_id: str
    user_id: str
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.rating_id:
            errors.append("rating_id is required")
        if not self.user_id:
            errors.append("user_id is required")
        self._fail(errors)
