"""
Tag usage counter.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow


def normalize_tag(name: str) -> str:
    """Lowercase and trim a tag name."""
    return (name or "").strip().lower()


@dataclass
class Tag(Entity):
    """How many public vibes currently use a tag."""

    DATETIME_FIELDS = ("created_at", "last_used")

    name: str
    count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    last_used: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.name = normalize_tag(self.name)
        errors = []
        if not self.name:
            errors.append("name is required and cannot be empty")
        if self.count < 0:
            errors.append("count cannot be negative")
        self._fail(errors)

    def __str__(self) -> str:
        return f"#{self.name} ({self.count})"
