"""
Services module.

Application logic for each area of the product. Services share one
storage and reach each other through the Backend that owns them.
"""

from vibechecc.services.users import UserService
from vibechecc.services.vibes import VibeService
from vibechecc.services.ratings import RatingService
from vibechecc.services.rating_likes import RatingLikeService
from vibechecc.services.reactions import ReactionService
from vibechecc.services.follows import FollowService
from vibechecc.services.notifications import NotificationService
from vibechecc.services.tags import TagService
from vibechecc.services.admin import AdminService

__all__ = [
    "UserService",
    "VibeService",
    "RatingService",
    "RatingLikeService",
    "ReactionService",
    "FollowService",
    "NotificationService",
    "TagService",
    "AdminService",
]
