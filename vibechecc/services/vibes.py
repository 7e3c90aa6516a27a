"""
Vibes: creation, editing, soft deletion and the feeds that list them.
"""

from typing import Dict, List, Optional

from vibechecc.errors import AuthorizationError, NotFoundError, ValidationError
from vibechecc.models import (
    MAX_RATING,
    MIN_RATING,
    TYPE_NEW_VIBE,
    VISIBILITY_DELETED,
    VISIBILITY_PUBLIC,
    Rating,
    Reaction,
    Vibe,
)
from vibechecc.scoring import compute_average_rating, compute_trending_score
from vibechecc.storage import RATINGS, REACTIONS, VIBES, paginate_list
from vibechecc.utils import clamp_limit, utcnow
from vibechecc.validation import (
    validate_string,
    validate_tags,
    validate_url,
    validate_vibe_description,
    validate_vibe_title,
)

# Ratings embedded in each feed item
EMBEDDED_RATINGS = 10

# Followers notified when someone shares a vibe
NEW_VIBE_MAX_FOLLOWERS = 100

SEARCH_SORTS = ("relevance", "recent", "rating", "popular")


class VibeService:
    """Vibes are addressed by their storage record id."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    # =========================================================================
    # Loading and enrichment
    # =========================================================================

    def get(self, vibe_id: str) -> Optional[Vibe]:
        if not vibe_id:
            return None
        record = self.storage.get(VIBES, vibe_id)
        return Vibe.from_record(record) if record else None

    def require_vibe(self, vibe_id: str) -> Vibe:
        vibe = self.get(vibe_id)
        if vibe is None:
            raise NotFoundError("Vibe not found")
        return vibe

    def _public_vibes(self, limit: Optional[int] = None) -> List[Vibe]:
        records = self.storage.list_records(
            VIBES,
            filters={"visibility": VISIBILITY_PUBLIC},
            sort_field="created_at",
            descending=True,
            limit=limit,
        )
        return [Vibe.from_record(r) for r in records]

    def ratings_for(self, vibe_id: str) -> List[Rating]:
        records = self.storage.list_records(
            RATINGS, filters={"vibe_id": vibe_id}, sort_field="created_at", descending=True
        )
        return [Rating.from_record(r) for r in records]

    def reactions_for(self, vibe_id: str) -> List[Reaction]:
        records = self.storage.list_records(REACTIONS, filters={"vibe_id": vibe_id})
        return [Reaction.from_record(r) for r in records]

    def enrich(self, vibe: Vibe, ratings: Optional[List[Rating]] = None) -> dict:
        """
        JSON-ready vibe with its creator, newest ratings (each with the
        rater's profile), average rating and rating count.
        """
        if ratings is None:
            ratings = self.ratings_for(vibe.id)
        shown = ratings[:EMBEDDED_RATINGS]
        users = self.backend.users.get_many([vibe.created_by_id] + [r.user_id for r in shown])

        data = vibe.to_dict()
        creator = users.get(vibe.created_by_id)
        data["created_by"] = creator.to_public_dict() if creator else None
        data["ratings"] = []
        for rating in shown:
            item = rating.to_dict()
            rater = users.get(rating.user_id)
            item["user"] = rater.to_public_dict() if rater else None
            data["ratings"].append(item)
        data["average_rating"] = round(compute_average_rating(ratings), 2)
        data["rating_count"] = len(ratings)
        return data

    # =========================================================================
    # Queries
    # =========================================================================

    def get_by_id(self, vibe_id: str, viewer_id: Optional[str] = None) -> Optional[dict]:
        """Enriched vibe. Deleted vibes are only visible to their owner."""
        vibe = self.get(vibe_id)
        if vibe is None:
            return None
        if vibe.is_deleted and vibe.created_by_id != viewer_id:
            return None
        return self.enrich(vibe)

    def get_all(self, limit: int = 20, cursor: Optional[str] = None) -> dict:
        """Newest public vibes, one page at a time."""
        page = self.storage.paginate(
            VIBES,
            filters={"visibility": VISIBILITY_PUBLIC},
            sort_field="created_at",
            descending=True,
            cursor=cursor,
            limit=clamp_limit(limit),
        )
        return {
            "vibes": [self.enrich(Vibe.from_record(r)) for r in page.items],
            "continue_cursor": page.continue_cursor,
            "is_done": page.is_done,
        }

    def get_by_user(self, user_id: str, viewer_id: Optional[str] = None, limit: int = 50) -> List[dict]:
        """A user's vibes, newest first. Owners also see their deleted vibes."""
        records = self.storage.list_records(
            VIBES, filters={"created_by_id": user_id}, sort_field="created_at", descending=True
        )
        vibes = [Vibe.from_record(r) for r in records]
        if viewer_id != user_id:
            vibes = [v for v in vibes if not v.is_deleted]
        return [self.enrich(v) for v in vibes[:clamp_limit(limit, default=50)]]

    def get_by_tag(self, tag: str, limit: int = 10) -> List[dict]:
        tag = (tag or "").strip().lower()
        if not tag:
            return []
        limit = clamp_limit(limit, default=10)
        matches = [v for v in self._public_vibes() if tag in v.tags]
        return [self.enrich(v) for v in matches[:limit]]

    def get_following_vibes(
        self, user_id: Optional[str], limit: int = 20, cursor: Optional[str] = None
    ) -> dict:
        """Newest public vibes from people ``user_id`` follows."""
        if not user_id:
            return {"vibes": [], "continue_cursor": None, "is_done": True}

        following = set(self.backend.follows.get_following_ids(user_id))
        vibes = [v for v in self._public_vibes() if v.created_by_id in following]
        items, next_cursor, is_done = paginate_list(vibes, cursor, clamp_limit(limit))
        return {
            "vibes": [self.enrich(v) for v in items],
            "continue_cursor": next_cursor,
            "is_done": is_done,
        }

    def get_top_rated(self, limit: int = 10, min_ratings: int = 2) -> List[dict]:
        """Public vibes with at least ``min_ratings`` ratings, best average first."""
        scored = []
        for vibe in self._public_vibes():
            ratings = self.ratings_for(vibe.id)
            if len(ratings) >= min_ratings:
                scored.append((compute_average_rating(ratings), len(ratings), vibe, ratings))

        scored.sort(key=lambda s: (s[0], s[1]), reverse=True)
        return [self.enrich(v, r) for _, _, v, r in scored[:clamp_limit(limit, default=10)]]

    def get_trending(self, limit: int = 20, time_window_hours: float = 24, now=None) -> List[dict]:
        """
        Public vibes ranked by trending score.

        Scores the newest ``4 * limit`` vibes (at most 200) so older
        content with fresh engagement can still surface.

        Raises:
            ValidationError: If the time window is not positive.
        """
        if time_window_hours is None or time_window_hours <= 0:
            raise ValidationError("timeWindowHours must be greater than 0")
        limit = clamp_limit(limit)
        now = now or utcnow()
        candidates = self._public_vibes(limit=min(limit * 4, 200))

        scored = []
        for vibe in candidates:
            ratings = self.ratings_for(vibe.id)
            result = compute_trending_score(
                vibe,
                ratings,
                self.reactions_for(vibe.id),
                now=now,
                time_window_hours=time_window_hours,
            )
            scored.append((result, vibe, ratings))

        scored.sort(key=lambda s: s[0].score, reverse=True)

        items = []
        for result, vibe, ratings in scored[:limit]:
            data = self.enrich(vibe, ratings)
            data["trending_score"] = round(result.score, 4)
            items.append(data)
        return items

    def search(
        self,
        query: Optional[str] = None,
        tags: Optional[List[str]] = None,
        min_rating: Optional[float] = None,
        max_rating: Optional[float] = None,
        sort: str = "relevance",
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> dict:
        """
        Search public vibes.

        Text matches count 3 for the title, 2 per tag and 1 for the
        description. Every requested tag must be present. Rating bounds
        apply to the average rating; unrated vibes only pass when no
        minimum is set.

        Returns:
            {"vibes", "continue_cursor", "is_done", "total_count"}
        """
        if sort not in SEARCH_SORTS:
            raise ValidationError(f"sort must be one of {SEARCH_SORTS}")
        for name, bound in (("minRating", min_rating), ("maxRating", max_rating)):
            if bound is not None and not MIN_RATING <= bound <= MAX_RATING:
                raise ValidationError(f"{name} must be between {MIN_RATING} and {MAX_RATING}")

        text = (validate_string(query, max_length=200, field_name="Query") or "").lower()
        wanted_tags = [t.strip().lower() for t in tags or [] if t and t.strip()]

        results = []
        for vibe in self._public_vibes():
            if wanted_tags and not all(t in vibe.tags for t in wanted_tags):
                continue

            relevance = 0
            if text:
                if text in vibe.title.lower():
                    relevance += 3
                relevance += 2 * sum(1 for t in vibe.tags if text in t)
                if text in vibe.description.lower():
                    relevance += 1
                if relevance == 0:
                    continue

            ratings = self.ratings_for(vibe.id)
            average = compute_average_rating(ratings)
            if min_rating is not None and (not ratings or average < min_rating):
                continue
            if max_rating is not None and ratings and average > max_rating:
                continue

            results.append({
                "vibe": vibe,
                "ratings": ratings,
                "relevance": relevance,
                "average": average,
            })

        if sort == "rating":
            results.sort(key=lambda r: (r["average"], len(r["ratings"])), reverse=True)
        elif sort == "popular":
            results.sort(key=lambda r: (len(r["ratings"]), r["vibe"].created_at), reverse=True)
        elif sort == "relevance" and text:
            results.sort(key=lambda r: (r["relevance"], r["vibe"].created_at), reverse=True)
        # "recent" and query-less relevance keep newest-first order

        items, next_cursor, is_done = paginate_list(results, cursor, clamp_limit(limit))
        return {
            "vibes": [self.enrich(r["vibe"], r["ratings"]) for r in items],
            "continue_cursor": next_cursor,
            "is_done": is_done,
            "total_count": len(results),
        }

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(
        self,
        user_id: str,
        title: str,
        description: str,
        image: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> str:
        """
        Create a public vibe.

        Returns:
            The new vibe id.
        """
        title = validate_vibe_title(title)
        description = validate_vibe_description(description)
        image = validate_url(image)
        tags = list(dict.fromkeys(validate_tags(tags)))

        if self.backend.rate_limiter is not None:
            self.backend.rate_limiter.check(user_id, "create_vibe")

        creator = self.backend.users.ensure_user_exists(user_id)

        vibe = Vibe(
            title=title,
            description=description,
            created_by_id=user_id,
            image=image,
            tags=tags,
        )
        vibe_id = self.storage.insert(VIBES, vibe.to_record())

        if tags:
            self.backend.tags.update_tag_counts(tags_to_add=tags)

        try:
            self.backend.notifications.create_follower_notifications(
                trigger_user_id=user_id,
                type=TYPE_NEW_VIBE,
                target_id=vibe_id,
                title=f"{creator.display_name} shared a new vibe",
                description="check it out",
                metadata={"vibe_title": title},
                max_followers=NEW_VIBE_MAX_FOLLOWERS,
            )
        except Exception as e:
            print(f"[vibes] Failed to create new vibe notifications: {e}")

        self.backend.analytics.capture(user_id, "vibe_created", {"vibe_id": vibe_id, "tags": tags})
        return vibe_id

    def _require_owned(self, user_id: str, vibe_id: str, action: str) -> Vibe:
        vibe = self.require_vibe(vibe_id)
        if vibe.created_by_id != user_id:
            raise AuthorizationError(f"You can only {action} your own vibes")
        return vibe

    def update(
        self,
        user_id: str,
        vibe_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        image: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> dict:
        """Edit an owned, non-deleted vibe. Only passed fields change."""
        vibe = self._require_owned(user_id, vibe_id, "edit")
        if vibe.is_deleted:
            raise ValidationError("Cannot edit a deleted vibe")

        changes: Dict[str, object] = {}
        if title is not None:
            changes["title"] = validate_vibe_title(title)
        if description is not None:
            changes["description"] = validate_vibe_description(description)
        if image is not None:
            changes["image"] = validate_url(image)
        if tags is not None:
            new_tags = list(dict.fromkeys(validate_tags(tags)))
            changes["tags"] = new_tags
            self.backend.tags.update_tag_counts(
                tags_to_add=[t for t in new_tags if t not in vibe.tags],
                tags_to_remove=[t for t in vibe.tags if t not in new_tags],
            )

        changes["updated_at"] = utcnow().isoformat()
        record = self.storage.update(VIBES, vibe_id, changes)
        return self.enrich(Vibe.from_record(record))

    def delete(self, user_id: str, vibe_id: str) -> dict:
        """Soft delete an owned vibe and release its tags."""
        vibe = self._require_owned(user_id, vibe_id, "delete")
        self.soft_delete(vibe)
        return {"success": True}

    def soft_delete(self, vibe: Vibe) -> None:
        if vibe.is_deleted:
            raise ValidationError("Vibe is already deleted")
        self.storage.update(
            VIBES,
            vibe.id,
            {"visibility": VISIBILITY_DELETED, "updated_at": utcnow().isoformat()},
        )
        if vibe.tags:
            self.backend.tags.update_tag_counts(tags_to_remove=vibe.tags)
