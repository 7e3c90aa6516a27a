"""
Likes on individual ratings.
"""

from typing import Iterable, List, Optional

from vibechecc.errors import NotFoundError, ValidationError
from vibechecc.models import TYPE_RATING, Rating, RatingLike
from vibechecc.storage import RATING_LIKES, RATINGS
from vibechecc.utils import clamp_limit

# Characters of the review quoted in a like notification
REVIEW_PREVIEW_LENGTH = 100


class RatingLikeService:
    """One like per user and rating. Liking again removes the like."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def _require_rating(self, rating_id: str) -> Rating:
        record = self.storage.get(RATINGS, rating_id) if rating_id else None
        if record is None:
            raise NotFoundError("Rating not found")
        return Rating.from_record(record)

    def like_rating(self, user_id: str, rating_id: str) -> dict:
        """
        Toggle the caller's like on a rating.

        Returns:
            {"action": "liked" | "unliked", "like_count": int, "is_liked": bool}

        Raises:
            NotFoundError: Unknown rating.
            ValidationError: Liking your own rating.
        """
        rating = self._require_rating(rating_id)
        if rating.user_id == user_id:
            raise ValidationError("You cannot like your own rating")

        self.backend.users.ensure_user_exists(user_id)

        like_id, created = self.storage.insert_unique(
            RATING_LIKES,
            {"rating_id": rating_id, "user_id": user_id},
            RatingLike(rating_id=rating_id, user_id=user_id).to_record(),
        )
        if not created:
            self.storage.delete(RATING_LIKES, like_id)
            return {
                "action": "unliked",
                "like_count": self.get_rating_like_count(rating_id),
                "is_liked": False,
            }

        try:
            self.backend.notifications.create_notification(
                user_id=rating.user_id,
                type=TYPE_RATING,
                trigger_user_id=user_id,
                target_id=rating_id,
                title="Rating liked",
                description="Someone liked your rating",
                metadata={
                    "action": "rating_liked",
                    "rating_id": rating_id,
                    "vibe_id": rating.vibe_id,
                    "emoji": rating.emoji,
                    "rating_text": rating.review[:REVIEW_PREVIEW_LENGTH],
                },
            )
        except NotFoundError as e:
            print(f"[rating_likes] Failed to create like notification: {e.message}")

        self.backend.analytics.capture(user_id, "rating_liked", {"rating_id": rating_id})
        return {
            "action": "liked",
            "like_count": self.get_rating_like_count(rating_id),
            "is_liked": True,
        }

    def get_rating_like_count(self, rating_id: str) -> int:
        return self.storage.count(RATING_LIKES, {"rating_id": rating_id})

    def is_rating_liked_by_user(self, rating_id: str, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        return self.storage.find_one(RATING_LIKES, {"rating_id": rating_id, "user_id": user_id}) is not None

    def get_rating_likes(self, rating_id: str) -> dict:
        """Likes on a rating, newest first, each with the liker's public profile."""
        records = self.storage.list_records(
            RATING_LIKES, filters={"rating_id": rating_id}, sort_field="created_at"
        )
        users = self.backend.users.get_many(r["user_id"] for r in records)

        likes = []
        for record in records:
            data = RatingLike.from_record(record).to_dict()
            user = users.get(record["user_id"])
            data["user"] = user.to_public_dict() if user else None
            likes.append(data)
        return {"likes": likes, "count": len(likes)}

    def get_batch_rating_like_data(self, rating_ids: Iterable[str], viewer_id: Optional[str] = None) -> dict:
        """Like counts and the viewer's like state for several ratings at once."""
        rating_ids = list(rating_ids)
        like_counts = {}
        user_likes = {}
        for rating_id in rating_ids:
            records = self.storage.list_records(RATING_LIKES, filters={"rating_id": rating_id})
            like_counts[rating_id] = len(records)
            user_likes[rating_id] = bool(viewer_id) and any(r["user_id"] == viewer_id for r in records)
        return {"like_counts": like_counts, "user_likes": user_likes}

    def get_user_liked_ratings(self, user_id: Optional[str], limit: int = 20) -> List[dict]:
        """Ratings a user liked, newest like first. Deleted ratings are skipped."""
        if not user_id:
            return []

        records = self.storage.list_records(
            RATING_LIKES, filters={"user_id": user_id}, sort_field="created_at", limit=clamp_limit(limit)
        )
        items = []
        for record in records:
            rating_record = self.storage.get(RATINGS, record["rating_id"])
            if rating_record is None:
                continue
            rating = Rating.from_record(rating_record)
            vibe = self.backend.vibes.get(rating.vibe_id)
            items.append({
                "like": RatingLike.from_record(record).to_dict(),
                "rating": rating.to_dict(),
                "author": self.backend.users.public_profile(rating.user_id),
                "vibe": {"id": vibe.id, "title": vibe.title} if vibe else None,
            })
        return items

    def delete_likes_for_rating(self, rating_id: str) -> int:
        records = self.storage.list_records(RATING_LIKES, filters={"rating_id": rating_id})
        for record in records:
            self.storage.delete(RATING_LIKES, record["_id"])
        return len(records)
