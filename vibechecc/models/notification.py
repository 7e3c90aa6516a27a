"""
In-app notification model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from vibechecc.models.base import Entity
from vibechecc.utils.dates import utcnow

TYPE_FOLLOW = "follow"
TYPE_RATING = "rating"
TYPE_NEW_VIBE = "new_vibe"
TYPE_NEW_RATING = "new_rating"

NOTIFICATION_TYPES = (TYPE_FOLLOW, TYPE_RATING, TYPE_NEW_VIBE, TYPE_NEW_RATING)


@dataclass
class Notification(Entity):
    """
    A notification delivered to ``user_id``.

    Attributes:
        user_id: Recipient external id.
        type: One of NOTIFICATION_TYPES.
        trigger_user_id: external_id of the user whose action caused it.
        target_id: Id of the related object (vibe id, or follower id for follows).
        title: Short headline ("alex followed you").
        description: Secondary line.
        metadata: Extra context (vibe title, emoji, ...).
        read: Whether the recipient has seen it.
    """

    user_id: str
    type: str
    trigger_user_id: str
    target_id: str
    title: str
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    read: bool = False
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []
        if not self.user_id:
            errors.append("user_id is required")
        if self.type not in NOTIFICATION_TYPES:
            errors.append(f"type must be one of {NOTIFICATION_TYPES}, got {self.type!r}")
        if not self.trigger_user_id:
            errors.append("trigger_user_id is required")
        if not self.title:
            errors.append("title is required")
        self._fail(errors)
