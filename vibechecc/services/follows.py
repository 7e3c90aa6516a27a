"""
Follow graph between users.
"""

from typing import List, Optional

from vibechecc.errors import ConflictError, NotFoundError, ValidationError
from vibechecc.models import TYPE_FOLLOW, Follow
from vibechecc.storage import FOLLOWS, USERS, VIBES, RATINGS
from vibechecc.utils import clamp_limit


class FollowService:
    """Follow edges keyed by external ids, with denormalized counters on users."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def _edge(self, follower_id: str, following_id: str) -> Optional[dict]:
        return self.storage.find_one(
            FOLLOWS, {"follower_id": follower_id, "following_id": following_id}
        )

    def _bump(self, user, field: str, delta: int) -> None:
        self.storage.increment(USERS, user.id, field, delta)

    def follow(self, follower_id: str, following_id: str) -> str:
        """
        Follow another user.

        Returns:
            The follow edge id.

        Raises:
            ValidationError: Self-follow.
            NotFoundError: Target user does not exist.
            ConflictError: Already following.
        """
        if follower_id == following_id:
            raise ValidationError("You cannot follow yourself")

        users = self.backend.users
        follower = users.ensure_user_exists(follower_id)
        target = users.get_by_external_id(following_id)
        if target is None:
            raise NotFoundError("User to follow not found")

        follow_id, created = self.storage.insert_unique(
            FOLLOWS,
            {"follower_id": follower_id, "following_id": following_id},
            Follow(follower_id=follower_id, following_id=following_id).to_record(),
        )
        if not created:
            raise ConflictError("You are already following this user")

        self._bump(follower, "following_count", 1)
        self._bump(target, "follower_count", 1)

        try:
            self.backend.notifications.create_notification(
                user_id=following_id,
                type=TYPE_FOLLOW,
                trigger_user_id=follower_id,
                target_id=follower_id,
                title=f"{follower.display_name} followed you",
                description="check out their profile",
            )
        except NotFoundError as e:
            print(f"[follows] Failed to create follow notification: {e.message}")

        self.backend.analytics.capture(
            follower_id, "user_followed", {"following_id": following_id}
        )
        return follow_id

    def unfollow(self, follower_id: str, following_id: str) -> dict:
        edge = self._edge(follower_id, following_id)
        if edge is None:
            raise ValidationError("You are not following this user")

        if not self.storage.delete(FOLLOWS, edge["_id"]):
            raise ValidationError("You are not following this user")

        users = self.backend.users
        follower = users.get_by_external_id(follower_id)
        target = users.get_by_external_id(following_id)
        if follower is not None:
            self._bump(follower, "following_count", -1)
        if target is not None:
            self._bump(target, "follower_count", -1)

        return {"success": True}

    def is_following(self, follower_id: Optional[str], following_id: str) -> bool:
        if not follower_id:
            return False
        return self._edge(follower_id, following_id) is not None

    def get_follower_ids(self, user_id: str, limit: Optional[int] = None) -> List[str]:
        records = self.storage.list_records(
            FOLLOWS, filters={"following_id": user_id}, sort_field="created_at", limit=limit
        )
        return [r["follower_id"] for r in records]

    def get_following_ids(self, user_id: str, limit: Optional[int] = None) -> List[str]:
        records = self.storage.list_records(
            FOLLOWS, filters={"follower_id": user_id}, sort_field="created_at", limit=limit
        )
        return [r["following_id"] for r in records]

    def _page(self, filters: dict, user_key: str, limit: int, cursor: Optional[str]) -> dict:
        page = self.storage.paginate(
            FOLLOWS, filters=filters, sort_field="created_at", cursor=cursor, limit=clamp_limit(limit)
        )
        users = self.backend.users.get_many(r[user_key] for r in page.items)
        items = []
        for record in page.items:
            data = Follow.from_record(record).to_dict()
            user = users.get(record[user_key])
            data["user"] = user.to_public_dict() if user else None
            items.append(data)
        return {"items": items, "continue_cursor": page.continue_cursor, "is_done": page.is_done}

    def get_followers(self, user_id: str, limit: int = 20, cursor: Optional[str] = None) -> dict:
        """People following ``user_id``, newest first, each with their profile."""
        return self._page({"following_id": user_id}, "follower_id", limit, cursor)

    def get_following(self, user_id: str, limit: int = 20, cursor: Optional[str] = None) -> dict:
        """People ``user_id`` follows, newest first, each with their profile."""
        return self._page({"follower_id": user_id}, "following_id", limit, cursor)

    def get_follow_stats(self, user_id: str) -> dict:
        user = self.backend.users.get_by_external_id(user_id)
        if user is None:
            return {"followers": 0, "following": 0}
        return {"followers": user.follower_count, "following": user.following_count}

    def get_mutual_follows(self, user_id_1: str, user_id_2: str, limit: int = 20) -> dict:
        """Users that both users follow."""
        first = set(self.get_following_ids(user_id_1))
        mutual_ids = [i for i in self.get_following_ids(user_id_2) if i in first][:clamp_limit(limit)]
        users = self.backend.users.get_many(mutual_ids)
        return {
            "mutual_follows": [users[i].to_public_dict() for i in mutual_ids if i in users],
            "total_count": len(mutual_ids),
        }

    def get_suggested_follows(self, user_id: Optional[str], limit: int = 10) -> List[dict]:
        """
        Suggest users to follow.

        Friends-of-friends come first, ranked by how many of the people
        you follow also follow them. Remaining slots are filled with
        active creators ranked by rating engagement.
        """
        if not user_id:
            return []
        limit = clamp_limit(limit, default=10)

        following = self.get_following_ids(user_id)
        excluded = set(following) | {user_id}

        counts = {}
        for followed_id in following[:10]:
            for candidate in self.get_following_ids(followed_id):
                if candidate not in excluded:
                    counts[candidate] = counts.get(candidate, 0) + 1

        ranked = sorted(counts.items(), key=lambda kv: -kv[1])[:limit]
        users = self.backend.users.get_many(i for i, _ in ranked)
        suggestions = [
            {"user": users[i].to_public_dict(), "mutual_connections": n}
            for i, n in ranked
            if i in users
        ]

        if len(suggestions) < limit:
            excluded |= {s["user"]["external_id"] for s in suggestions}
            suggestions.extend(self._popular_creators(excluded, limit - len(suggestions)))

        return suggestions

    def _popular_creators(self, excluded: set, limit: int) -> List[dict]:
        recent = self.storage.list_records(
            VIBES, filters={"visibility": "public"}, sort_field="created_at", limit=200
        )
        engagement = {}
        for vibe in recent:
            creator = vibe.get("created_by_id")
            if creator in excluded:
                continue
            ratings = self.storage.list_records(RATINGS, filters={"vibe_id": vibe["_id"]})
            if not ratings:
                continue
            stats = engagement.setdefault(creator, {"total_ratings": 0, "total_value": 0, "vibe_count": 0})
            stats["total_ratings"] += len(ratings)
            stats["total_value"] += sum(r.get("value", 0) for r in ratings)
            stats["vibe_count"] += 1

        def score(stats):
            average = stats["total_value"] / stats["total_ratings"]
            return stats["total_ratings"] * (average / 5) + stats["vibe_count"] * 0.5

        ranked = sorted(engagement.items(), key=lambda kv: -score(kv[1]))[:limit]
        users = self.backend.users.get_many(i for i, _ in ranked)
        return [
            {
                "user": users[i].to_public_dict(),
                "mutual_connections": 0,
                "engagement_stats": {
                    "total_ratings": s["total_ratings"],
                    "average_rating": round(s["total_value"] / s["total_ratings"], 1),
                    "vibe_count": s["vibe_count"],
                },
            }
            for i, s in ranked
            if i in users
        ]
