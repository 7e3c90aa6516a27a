"""
User profile model.

Identity lives with Clerk; this is the application-side profile keyed by
the Clerk user id (``external_id``).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow


@dataclass
class User(Entity):
    """
    Application profile for a signed-in person.

    Attributes:
        external_id: Clerk user id ("user_..."). Required and unique.
        username: Public handle, unique when set.
        interests: Tag names the user cares about (from onboarding and ratings).
        socials: Platform name -> handle or URL.
        follower_count / following_count: Denormalized counters kept by follows.
    """

    DATETIME_FIELDS = (
        "created_at",
        "updated_at",
        "last_sign_in_at",
        "last_active_at",
    )

    external_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    profile_image_url: Optional[str] = None
    has_image: bool = False
    primary_email_address_id: Optional[str] = None
    last_sign_in_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    bio: Optional[str] = None
    interests: List[str] = field(default_factory=list)
    socials: Dict[str, str] = field(default_factory=dict)
    onboarding_completed: bool = False
    is_admin: bool = False
    suspended: bool = False
    follower_count: int = 0
    following_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.external_id or not str(self.external_id).strip():
            errors.append("external_id is required and cannot be empty")
        if self.follower_count < 0:
            errors.append("follower_count cannot be negative")
        if self.following_count < 0:
            errors.append("following_count cannot be negative")
        self._fail(errors)

    @property
    def display_name(self) -> str:
        """Username, else full name, else a neutral placeholder."""
        if self.username:
            return self.username
        full_name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full_name or "Someone"

    @property
    def avatar_url(self) -> Optional[str]:
        return self.image_url or self.profile_image_url

    def to_public_dict(self) -> dict:
        """Fields safe to show other users."""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "image_url": self.avatar_url,
            "bio": self.bio,
            "follower_count": self.follower_count,
            "following_count": self.following_count,
        }

    def __str__(self) -> str:
        return f"@{self.display_name} ({self.external_id})"
