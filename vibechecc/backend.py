"""
Service container.

A Backend wires every service to one storage, one analytics client and
one rate limiter. The web app and the CLI each build one.
"""

from typing import Optional

from vibechecc.analytics import AnalyticsClient
from vibechecc.config import RATE_LIMIT_ENABLED
from vibechecc.services import (
    AdminService,
    FollowService,
    NotificationService,
    RatingLikeService,
    RatingService,
    ReactionService,
    TagService,
    UserService,
    VibeService,
)
from vibechecc.storage import Storage, get_storage
from vibechecc.validation import RateLimiter


class Backend:
    """
    Holds the services.

    Args:
        storage: Storage backend. Defaults to get_storage().
        analytics: Analytics client. Defaults to a client built from config
            (a no-op without an API key).
        rate_limiter: Limiter for create/rate actions. Pass None to disable.
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        analytics: Optional[AnalyticsClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.storage = storage if storage is not None else get_storage()
        self.analytics = analytics if analytics is not None else AnalyticsClient()
        self.rate_limiter = rate_limiter

        self.users = UserService(self)
        self.tags = TagService(self)
        self.notifications = NotificationService(self)
        self.follows = FollowService(self)
        self.vibes = VibeService(self)
        self.ratings = RatingService(self)
        self.rating_likes = RatingLikeService(self)
        self.reactions = ReactionService(self)
        self.admin = AdminService(self)

    @classmethod
    def from_config(cls) -> "Backend":
        """Backend with configured storage and analytics, rate limited when enabled."""
        return cls(rate_limiter=RateLimiter() if RATE_LIMIT_ENABLED else None)

    def __repr__(self) -> str:
        return f"<Backend storage={self.storage.name!r} analytics={self.analytics.enabled}>"
