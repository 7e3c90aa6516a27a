"""
Emoji ratings on vibes.
"""

import statistics
from typing import List, Optional

from vibechecc.errors import AuthorizationError, ValidationError
from vibechecc.models import TYPE_NEW_RATING, TYPE_RATING, Rating
from vibechecc.scoring import default_rating_for_emoji
from vibechecc.storage import RATINGS
from vibechecc.utils import clamp_limit, utcnow
from vibechecc.validation import validate_emoji, validate_rating, validate_review, validate_tags

# Followers notified when someone reviews a vibe
NEW_RATING_MAX_FOLLOWERS = 50


class RatingService:
    """One rating per user per vibe; a second rating updates the first."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def get_user_rating(self, user_id: str, vibe_id: str) -> Optional[Rating]:
        record = self.storage.find_one(RATINGS, {"vibe_id": vibe_id, "user_id": user_id})
        return Rating.from_record(record) if record else None

    def _rateable_vibe(self, user_id: str, vibe_id: str):
        vibe = self.backend.vibes.require_vibe(vibe_id)
        if vibe.is_deleted:
            raise ValidationError("Cannot rate a deleted vibe")
        if vibe.created_by_id == user_id:
            raise AuthorizationError("You cannot rate your own vibe")
        return vibe

    def add_rating(
        self,
        user_id: str,
        vibe_id: str,
        emoji: str,
        value: int,
        review: str,
        tags: Optional[List[str]] = None,
    ) -> str:
        """
        Rate a vibe, or update the caller's existing rating.

        Returns:
            The rating id.
        """
        emoji = validate_emoji(emoji)
        value = validate_rating(value)
        review = validate_review(review)
        tags = validate_tags(tags)

        if self.backend.rate_limiter is not None:
            self.backend.rate_limiter.check(user_id, "add_rating")

        vibe = self._rateable_vibe(user_id, vibe_id)
        self.backend.users.ensure_user_exists(user_id)

        rating = Rating(vibe_id=vibe_id, user_id=user_id, emoji=emoji, value=value, review=review, tags=tags)
        rating_id, created = self.storage.insert_unique(
            RATINGS, {"vibe_id": vibe_id, "user_id": user_id}, rating.to_record()
        )
        if not created:
            self.storage.update(
                RATINGS,
                rating_id,
                {
                    "emoji": emoji,
                    "value": value,
                    "review": review,
                    "tags": tags,
                    "updated_at": utcnow().isoformat(),
                },
            )
            return rating_id

        self._after_new_rating(user_id, vibe, rating_id, emoji, value)
        return rating_id

    def quick_react(self, user_id: str, vibe_id: str, emoji: str) -> str:
        """
        Rate with just an emoji. The value comes from the emoji's sentiment.

        Raises:
            ValidationError: If the user already rated this vibe.
        """
        emoji = validate_emoji(emoji)

        if self.backend.rate_limiter is not None:
            self.backend.rate_limiter.check(user_id, "add_rating")

        vibe = self._rateable_vibe(user_id, vibe_id)
        self.backend.users.ensure_user_exists(user_id)
        value = default_rating_for_emoji(emoji)
        rating = Rating(
            vibe_id=vibe_id,
            user_id=user_id,
            emoji=emoji,
            value=value,
            review=f"Quick reaction: {emoji}",
        )
        rating_id, created = self.storage.insert_unique(
            RATINGS, {"vibe_id": vibe_id, "user_id": user_id}, rating.to_record()
        )
        if not created:
            raise ValidationError(
                "You have already rated this vibe. Update your existing rating instead."
            )
        self._after_new_rating(user_id, vibe, rating_id, emoji, value)
        return rating_id

    def _after_new_rating(self, user_id: str, vibe, rating_id: str, emoji: str, value: int) -> None:
        users = self.backend.users
        notifications = self.backend.notifications

        users.add_interests(user_id, vibe.tags)

        rater = users.get_by_external_id(user_id)
        rater_name = rater.display_name if rater else "Someone"
        creator = users.get_by_external_id(vibe.created_by_id)

        try:
            if creator is not None:
                notifications.create_notification(
                    user_id=vibe.created_by_id,
                    type=TYPE_RATING,
                    trigger_user_id=user_id,
                    target_id=vibe.id,
                    title=f"{rater_name} rated your vibe with {emoji}",
                    description="see what they thought",
                    metadata={"vibe_title": vibe.title, "emoji": emoji, "rating_value": value},
                )

            notifications.create_follower_notifications(
                trigger_user_id=user_id,
                type=TYPE_NEW_RATING,
                target_id=vibe.id,
                title=f"{rater_name} reviewed a vibe",
                description="see their review",
                metadata={
                    "vibe_title": vibe.title,
                    "vibe_creator": creator.display_name if creator else "Someone",
                    "emoji": emoji,
                    "rating_value": value,
                },
                max_followers=NEW_RATING_MAX_FOLLOWERS,
            )
        except Exception as e:
            print(f"[ratings] Failed to create rating notifications: {e}")

        self.backend.analytics.capture(
            user_id, "vibe_rated", {"vibe_id": vibe.id, "rating_id": rating_id, "emoji": emoji, "value": value}
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_ratings_for_vibe(self, vibe_id: str) -> List[dict]:
        """All ratings for a vibe, newest first, each with the rater's profile."""
        ratings = self.backend.vibes.ratings_for(vibe_id)
        users = self.backend.users.get_many(r.user_id for r in ratings)
        items = []
        for rating in ratings:
            data = rating.to_dict()
            rater = users.get(rating.user_id)
            data["user"] = rater.to_public_dict() if rater else None
            items.append(data)
        return items

    def get_user_ratings(self, user_id: str, limit: int = 50) -> List[dict]:
        """A user's ratings, newest first, each with the rated vibe (when still public)."""
        records = self.storage.list_records(
            RATINGS,
            filters={"user_id": user_id},
            sort_field="created_at",
            descending=True,
            limit=clamp_limit(limit, default=50),
        )
        items = []
        for record in records:
            data = Rating.from_record(record).to_dict()
            vibe = self.backend.vibes.get(record["vibe_id"])
            data["vibe"] = vibe.to_dict() if vibe and not vibe.is_deleted else None
            items.append(data)
        return items

    def get_emoji_rating_stats(self, vibe_id: str) -> List[dict]:
        """
        Per-emoji rating statistics for a vibe, most used emoji first.

        Each entry: emoji, count, average, median and a 1-5 distribution.
        """
        by_emoji = {}
        for rating in self.backend.vibes.ratings_for(vibe_id):
            by_emoji.setdefault(rating.emoji, []).append(rating.value)

        stats = []
        for emoji, values in by_emoji.items():
            distribution = {str(i): 0 for i in range(1, 6)}
            for value in values:
                distribution[str(value)] += 1
            stats.append({
                "emoji": emoji,
                "count": len(values),
                "average": round(sum(values) / len(values), 2),
                "median": statistics.median(values),
                "distribution": distribution,
            })

        stats.sort(key=lambda s: (-s["count"], -s["average"]))
        return stats
