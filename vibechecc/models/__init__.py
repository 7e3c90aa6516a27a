"""
Data models module.

Defines the stored entities: users, vibes, ratings, reactions, follows,
notifications and tags.
"""

from vibechecc.models.base import Entity
from vibechecc.models.user import User
from vibechecc.models.vibe import Vibe, VISIBILITY_PUBLIC, VISIBILITY_DELETED
from vibechecc.models.rating import Rating, RatingLike, Reaction, MIN_RATING, MAX_RATING
from vibechecc.models.follow import Follow
from vibechecc.models.notification import (
    Notification,
    NOTIFICATION_TYPES,
    TYPE_FOLLOW,
    TYPE_RATING,
    TYPE_NEW_VIBE,
    TYPE_NEW_RATING,
)
from vibechecc.models.tag import Tag, normalize_tag

__all__ = [
    "Entity",
    "User",
    "Vibe",
    "VISIBILITY_PUBLIC",
    "VISIBILITY_DELETED",
    "Rating",
    "RatingLike",
    "Reaction",
    "MIN_RATING",
    "MAX_RATING",
    "Follow",
    "Notification",
    "NOTIFICATION_TYPES",
    "TYPE_FOLLOW",
    "TYPE_RATING",
    "TYPE_NEW_VIBE",
    "TYPE_NEW_RATING",
    "Tag",
    "normalize_tag",
]
