"""
Follow edge between two users.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow


@dataclass
class Follow(Entity):
    """follower_id follows following_id (both external ids)."""

    follower_id: str
    following_id: str
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.follower_id:
            errors.append("follower_id is required")
        if not self.following_id:
            errors.append("following_id is required")
        if self.follower_id and self.follower_id == self.following_id:
            errors.append("a user cannot follow themselves")
        self._fail(errors)
