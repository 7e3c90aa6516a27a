"""
Vibe model: the short post users share and rate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow

VISIBILITY_PUBLIC = "public"
VISIBILITY_DELETED = "deleted"
VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_DELETED)


@dataclass
class Vibe(Entity):
    """
    A user-created post.

    Attributes:
        title: Short headline.
        description: Body text.
        created_by_id: external_id of the author.
        image: Optional image URL.
        tags: Normalized (lowercase) tag names.
        visibility: "public", or "deleted" after a soft delete.
    """

    DATETIME_FIELDS = ("created_at", "updated_at")

    title: str
    description: str
    created_by_id: str
    image: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    visibility: str = VISIBILITY_PUBLIC
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.title or not self.title.strip():
            errors.append("title is required and cannot be empty")
        if not self.description or not self.description.strip():
            errors.append("description is required and cannot be empty")
        if not self.created_by_id:
            errors.append("created_by_id is required")
        if self.visibility not in VISIBILITIES:
            errors.append(f"visibility must be one of {VISIBILITIES}, got {self.visibility!r}")
        self._fail(errors)

    @property
    def is_deleted(self) -> bool:
        return self.visibility == VISIBILITY_DELETED

    def __str__(self) -> str:
        return f"{self.title} (by {self.created_by_id})"
