"""
Admin dashboard and moderation.
"""

import math
from datetime import timedelta
from typing import Optional

from vibechecc.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from vibechecc.models import Rating, User, Vibe
from vibechecc.storage import FOLLOWS, NOTIFICATIONS, RATINGS, USERS, VIBES
from vibechecc.utils import clamp_limit, utcnow

USER_STATUSES = ("all", "active", "suspended")
USER_SORT_FIELDS = ("created_at", "username", "last_sign_in_at", "follower_count")

REVIEW_STATUSES = ("all", "flagged", "unflagged")
REVIEW_SORT_FIELDS = ("created_at", "updated_at", "value", "emoji")


class AdminService:
    """Operations restricted to administrators."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def require_admin(self, identity) -> None:
        """
        Allow callers with an admin role claim, or an ``is_admin`` profile.

        Raises:
            AuthenticationError: No identity.
            AuthorizationError: Not an admin.
        """
        if identity is None:
            raise AuthenticationError("Authentication required")
        if identity.has_admin_role:
            return

        user = self.backend.users.get_by_external_id(identity.subject)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_admin:
            raise AuthorizationError("Admin privileges required")

    def get_dashboard_stats(self, now=None) -> dict:
        now = now or utcnow()
        one_day_ago = now - timedelta(days=1)
        one_week_ago = now - timedelta(days=7)

        users = [User.from_record(r) for r in self.storage.list_records(USERS)]
        vibes = [Vibe.from_record(r) for r in self.storage.list_records(VIBES)]
        ratings = [Rating.from_record(r) for r in self.storage.list_records(RATINGS)]
        follows = self.storage.list_records(FOLLOWS)
        unread = self.storage.count(NOTIFICATIONS, {"read": False})

        one_day_ago_iso = one_day_ago.isoformat()
        average = sum(r.value for r in ratings) / len(ratings) if ratings else 0

        return {
            "users": {
                "total": len(users),
                "active": sum(1 for u in users if u.last_active_at and u.last_active_at > one_week_ago),
                "new": sum(1 for u in users if u.created_at > one_day_ago),
                "suspended": sum(1 for u in users if u.suspended),
            },
            "vibes": {
                "total": len(vibes),
                "public": sum(1 for v in vibes if not v.is_deleted),
                "deleted": sum(1 for v in vibes if v.is_deleted),
                "new": sum(1 for v in vibes if v.created_at > one_day_ago),
            },
            "ratings": {
                "total": len(ratings),
                "new": sum(1 for r in ratings if r.created_at > one_day_ago),
                "flagged": sum(1 for r in ratings if r.flagged),
                "average_rating": round(average, 2),
            },
            "engagement": {
                "total_follows": len(follows),
                "new_follows": sum(1 for f in follows if (f.get("created_at") or "") > one_day_ago_iso),
                "unread_notifications": unread,
            },
        }

    def moderate_vibe(self, vibe_id: str, action: str) -> dict:
        """
        Apply a moderation action to a vibe.

        Actions: "delete" (soft delete) or "restore".
        """
        vibes = self.backend.vibes
        vibe = vibes.require_vibe(vibe_id)

        if action == "delete":
            vibes.soft_delete(vibe)
        elif action == "restore":
            if not vibe.is_deleted:
                return {"success": True, "visibility": vibe.visibility}
            self.storage.update(VIBES, vibe_id, {"visibility": "public", "updated_at": utcnow().isoformat()})
            if vibe.tags:
                self.backend.tags.update_tag_counts(tags_to_add=vibe.tags)
        else:
            raise ValidationError(f"Unknown moderation action: {action}")

        print(f"[admin] Vibe {vibe_id}: {action}")
        return {"success": True, "visibility": "deleted" if action == "delete" else "public"}

    def flag_rating(self, rating_id: str, flagged: bool = True) -> dict:
        if self.storage.get(RATINGS, rating_id) is None:
            raise NotFoundError("Rating not found")
        self.storage.update(RATINGS, rating_id, {"flagged": flagged})
        return {"success": True, "flagged": flagged}

    def delete_rating(self, rating_id: str) -> dict:
        if not self.storage.delete(RATINGS, rating_id):
            raise NotFoundError("Rating not found")
        self.backend.rating_likes.delete_likes_for_rating(rating_id)
        print(f"[admin] Deleted rating {rating_id}")
        return {"success": True}

    def set_user_suspended(self, external_id: str, suspended: bool, reason: Optional[str] = None) -> dict:
        user = self.backend.users.require_user(external_id)
        self.storage.update(USERS, user.id, {"suspended": suspended, "updated_at": utcnow().isoformat()})
        print(f"[admin] User {external_id} suspended={suspended}" + (f" ({reason})" if reason else ""))
        return {"success": True, "suspended": suspended}

    def get_all_users(
        self,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        status: str = "all",
        sort_by: str = "created_at",
        sort_direction: str = "desc",
    ) -> dict:
        """
        One page of users for the admin table.

        ``search`` matches username, first/last name and bio. ``status`` is
        "all", "active" (not suspended) or "suspended".

        Returns:
            {"data": [user dicts], "total_count", "page_count"}
        """
        if status not in USER_STATUSES:
            raise ValidationError(f"status must be one of {USER_STATUSES}")

        users = [User.from_record(r) for r in self.storage.list_records(USERS)]

        if search:
            needle = search.lower()
            users = [
                u for u in users
                if any(needle in (value or "").lower() for value in (u.username, u.first_name, u.last_name, u.bio))
            ]
        if status == "suspended":
            users = [u for u in users if u.suspended]
        elif status == "active":
            users = [u for u in users if not u.suspended]

        if sort_by not in USER_SORT_FIELDS:
            sort_by = "created_at"
        users = _sorted(users, sort_by, sort_direction)
        return _paged([u.to_dict() for u in users], page, page_size)

    def get_user_stats(self, now=None) -> dict:
        now = now or utcnow()
        one_day_ago = now - timedelta(days=1)
        one_week_ago = now - timedelta(days=7)
        one_month_ago = now - timedelta(days=30)

        users = [User.from_record(r) for r in self.storage.list_records(USERS)]
        total = len(users)

        def percent(count: int) -> int:
            return round(count / total * 100) if total else 0

        return {
            "total_users": total,
            "active_users": sum(1 for u in users if u.last_active_at and u.last_active_at > one_week_ago),
            "suspended_users": sum(1 for u in users if u.suspended),
            "new_users_today": sum(1 for u in users if u.created_at > one_day_ago),
            "new_users_this_week": sum(1 for u in users if u.created_at > one_week_ago),
            "new_users_this_month": sum(1 for u in users if u.created_at > one_month_ago),
            "onboarding_completion_rate": percent(sum(1 for u in users if u.onboarding_completed)),
            "profile_completion_rate": percent(sum(1 for u in users if u.bio and u.bio.strip())),
        }

    def get_all_reviews(
        self,
        page: int = 1,
        page_size: int = 20,
        rating_from: Optional[int] = None,
        rating_to: Optional[int] = None,
        emoji: Optional[str] = None,
        search: Optional[str] = None,
        status: str = "all",
        sort_by: str = "created_at",
        sort_direction: str = "desc",
    ) -> dict:
        """
        One page of ratings for review moderation.

        ``status`` is "all", "flagged" or "unflagged". Each row carries the
        author's public profile and the vibe title.
        """
        if status not in REVIEW_STATUSES:
            raise ValidationError(f"status must be one of {REVIEW_STATUSES}")

        ratings = [Rating.from_record(r) for r in self.storage.list_records(RATINGS)]

        if emoji:
            ratings = [r for r in ratings if r.emoji == emoji]
        if rating_from is not None:
            ratings = [r for r in ratings if r.value >= rating_from]
        if rating_to is not None:
            ratings = [r for r in ratings if r.value <= rating_to]
        if search:
            needle = search.lower()
            ratings = [r for r in ratings if needle in r.review.lower()]
        if status == "flagged":
            ratings = [r for r in ratings if r.flagged]
        elif status == "unflagged":
            ratings = [r for r in ratings if not r.flagged]

        if sort_by not in REVIEW_SORT_FIELDS:
            sort_by = "created_at"
        result = _paged(_sorted(ratings, sort_by, sort_direction), page, page_size)

        users = self.backend.users
        rows = []
        for rating in result["data"]:
            row = rating.to_dict()
            row["user"] = users.public_profile(rating.user_id)
            vibe = self.backend.vibes.get(rating.vibe_id)
            row["vibe"] = {"id": vibe.id, "title": vibe.title} if vibe else None
            rows.append(row)
        result["data"] = rows
        return result


def _sorted(items: list, sort_by: str, sort_direction: str) -> list:
    """Sort entities by an attribute; missing values sort as lowest."""
    if sort_direction not in ("asc", "desc"):
        raise ValidationError("sort_direction must be 'asc' or 'desc'")

    present = [i for i in items if getattr(i, sort_by, None) is not None]
    missing = [i for i in items if getattr(i, sort_by, None) is None]
    present.sort(key=lambda i: getattr(i, sort_by), reverse=sort_direction == "desc")
    return present + missing if sort_direction == "desc" else missing + present


def _paged(items: list, page: int, page_size: int) -> dict:
    """1-based page slice with totals."""
    page_size = clamp_limit(page_size)
    page = max(1, int(page or 1))
    start = (page - 1) * page_size
    return {
        "data": items[start:start + page_size],
        "total_count": len(items),
        "page_count": math.ceil(len(items) / page_size),
    }
