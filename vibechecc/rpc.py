"""
RPC function registry.

Exposes service operations under stable "module:function" names
("vibes:getAll", "ratings:addRating", ...) so a client can call
POST /api/query or /api/mutation with {"path": ..., "args": {...}}.
Arguments use camelCase keys; results are plain JSON values.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from vibechecc.errors import AuthenticationError, NotFoundError, ValidationError
from vibechecc.models.base import Entity

QUERY = "query"
MUTATION = "mutation"

Handler = Callable[[Any, Optional[Any], Dict[str, Any]], Any]


@dataclass
class RpcFunction:
    name: str
    kind: str
    handler: Handler


_REGISTRY: Dict[str, RpcFunction] = {}


def rpc(name: str, kind: str = QUERY):
    """Register ``handler(backend, identity, args)`` under ``name``."""
    def decorator(handler: Handler) -> Handler:
        _REGISTRY[name] = RpcFunction(name=name, kind=kind, handler=handler)
        return handler
    return decorator


def query(name: str):
    return rpc(name, QUERY)


def mutation(name: str):
    return rpc(name, MUTATION)


def list_functions(kind: Optional[str] = None) -> List[str]:
    return sorted(n for n, f in _REGISTRY.items() if kind is None or f.kind == kind)


def to_json(value: Any) -> Any:
    """Convert entities and datetimes (at any depth) into JSON values."""
    if isinstance(value, Entity):
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def call(backend, path: str, args: Optional[Dict[str, Any]] = None, identity=None, kind: Optional[str] = None) -> Any:
    """
    Run a registered function.

    Raises:
        NotFoundError: Unknown function, or a query called as a mutation
            (and vice versa).
        VibecheccError: Whatever the service raises.
    """
    function = _REGISTRY.get(path or "")
    if function is None or (kind is not None and function.kind != kind):
        raise NotFoundError(f"Could not find public function for '{path}'")
    if args is not None and not isinstance(args, dict):
        raise ValidationError("args must be an object")
    return to_json(function.handler(backend, identity, args or {}))


def success(value: Any) -> dict:
    return {"status": "success", "value": value}


def failure(message: str) -> dict:
    return {"status": "error", "errorMessage": message}


# =============================================================================
# Argument helpers
# =============================================================================

def _caller(identity) -> str:
    if identity is None:
        raise AuthenticationError("Authentication required")
    return identity.subject


def _viewer(identity) -> Optional[str]:
    return identity.subject if identity is not None else None


def _arg(args: Dict[str, Any], key: str) -> Any:
    if args.get(key) is None:
        raise ValidationError(f"Missing argument: {key}")
    return args[key]


def _object(args: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = args.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{key} must be an object")
    return value


def _number(value: Any, key: str) -> Optional[float]:
    """
    Coerce a numeric argument. Numeric strings are accepted; None stays None.

    Raises:
        ValidationError: Booleans, non-numeric strings and non-finite values.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{key} must be a number")
    return number


def _int(args: Dict[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    number = _number(args.get(key), key)
    return default if number is None else int(number)


def _string_list(value: Any, key: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of strings")
    return value


def _page(args: Dict[str, Any], default_limit: int = 20):
    """Read Convex-style paginationOpts ({"numItems", "cursor"}) or limit/cursor."""
    opts = _object(args, "paginationOpts")
    limit = opts.get("numItems", args.get("limit", default_limit))
    cursor = opts.get("cursor", args.get("cursor"))
    return limit, cursor


# =============================================================================
# Users
# =============================================================================

@query("users:current")
def _users_current(backend, identity, args):
    if identity is None:
        return None
    return backend.users.get_by_external_id(identity.subject)


@query("users:getById")
def _users_get_by_id(backend, identity, args):
    return backend.users.public_profile(_arg(args, "id"))


@query("users:getByUsername")
def _users_get_by_username(backend, identity, args):
    user = backend.users.get_by_username(_arg(args, "username"))
    return user.to_public_dict() if user else None


@query("users:getAll")
def _users_get_all(backend, identity, args):
    return [u.to_public_dict() for u in backend.users.list_users(args.get("limit", 50))]


@query("users:getOnboardingStatus")
def _users_onboarding_status(backend, identity, args):
    return backend.users.get_onboarding_status(_viewer(identity))


@mutation("users:ensureUserExists")
def _users_ensure(backend, identity, args):
    return backend.users.ensure_user_exists(_caller(identity))


@mutation("users:updateProfile")
def _users_update_profile(backend, identity, args):
    return backend.users.update_profile(
        _caller(identity),
        username=args.get("username"),
        first_name=args.get("firstName"),
        last_name=args.get("lastName"),
        bio=args.get("bio"),
        image_url=args.get("imageUrl"),
        socials=args.get("socials"),
    )


@mutation("users:completeOnboarding")
def _users_complete_onboarding(backend, identity, args):
    return backend.users.complete_onboarding(
        _caller(identity),
        interests=args.get("interests"),
        username=args.get("username"),
        bio=args.get("bio"),
        image_url=args.get("imageUrl"),
    )


# =============================================================================
# Vibes
# =============================================================================

@query("vibes:getAll")
def _vibes_get_all(backend, identity, args):
    limit, cursor = _page(args)
    return backend.vibes.get_all(limit=limit, cursor=cursor)


@query("vibes:getById")
def _vibes_get_by_id(backend, identity, args):
    return backend.vibes.get_by_id(_arg(args, "id"), viewer_id=_viewer(identity))


@query("vibes:getByUser")
def _vibes_get_by_user(backend, identity, args):
    return backend.vibes.get_by_user(
        _arg(args, "userId"), viewer_id=_viewer(identity), limit=args.get("limit", 50)
    )


@query("vibes:getByTag")
def _vibes_get_by_tag(backend, identity, args):
    return backend.vibes.get_by_tag(_arg(args, "tag"), limit=args.get("limit", 10))


@query("vibes:getFollowingVibes")
def _vibes_following(backend, identity, args):
    limit, cursor = _page(args)
    return backend.vibes.get_following_vibes(_viewer(identity), limit=limit, cursor=cursor)


@query("vibes:getTopRated")
def _vibes_top_rated(backend, identity, args):
    return backend.vibes.get_top_rated(limit=args.get("limit", 10))


@query("vibes:getTrending")
def _vibes_trending(backend, identity, args):
    window = _number(args.get("timeWindowHours"), "timeWindowHours")
    return backend.vibes.get_trending(
        limit=args.get("limit", 20), time_window_hours=24 if window is None else window
    )


@query("search:searchVibes")
def _search_vibes(backend, identity, args):
    limit, cursor = _page(args)
    filters = _object(args, "filters")
    return backend.vibes.search(
        query=args.get("query"),
        tags=_string_list(filters.get("tags"), "tags"),
        min_rating=_number(filters.get("minRating"), "minRating"),
        max_rating=_number(filters.get("maxRating"), "maxRating"),
        sort=args.get("sort", "relevance"),
        limit=limit,
        cursor=cursor,
    )


@mutation("vibes:create")
def _vibes_create(backend, identity, args):
    return backend.vibes.create(
        _caller(identity),
        title=args.get("title"),
        description=args.get("description"),
        image=args.get("image"),
        tags=args.get("tags"),
    )


@mutation("vibes:update")
def _vibes_update(backend, identity, args):
    return backend.vibes.update(
        _caller(identity),
        _arg(args, "vibeId"),
        title=args.get("title"),
        description=args.get("description"),
        image=args.get("image"),
        tags=args.get("tags"),
    )


@mutation("vibes:deleteVibe")
def _vibes_delete(backend, identity, args):
    return backend.vibes.delete(_caller(identity), _arg(args, "vibeId"))


# =============================================================================
# Ratings and reactions
# =============================================================================

@mutation("ratings:addRating")
def _ratings_add(backend, identity, args):
    return backend.ratings.add_rating(
        _caller(identity),
        _arg(args, "vibeId"),
        emoji=args.get("emoji"),
        value=args.get("value"),
        review=args.get("review"),
        tags=args.get("tags"),
    )


@mutation("ratings:quickReact")
def _ratings_quick_react(backend, identity, args):
    return backend.ratings.quick_react(_caller(identity), _arg(args, "vibeId"), args.get("emoji"))


@query("ratings:getAllRatingsForVibe")
def _ratings_for_vibe(backend, identity, args):
    return backend.ratings.get_ratings_for_vibe(_arg(args, "vibeId"))


@query("ratings:getUserRatings")
def _ratings_for_user(backend, identity, args):
    return backend.ratings.get_user_ratings(_arg(args, "userId"), limit=args.get("limit", 50))


@query("ratings:getEmojiRatingStats")
def _ratings_emoji_stats(backend, identity, args):
    return backend.ratings.get_emoji_rating_stats(_arg(args, "vibeId"))


@mutation("ratingLikes:likeRating")
def _rating_likes_toggle(backend, identity, args):
    return backend.rating_likes.like_rating(_caller(identity), _arg(args, "ratingId"))


@query("ratingLikes:getRatingLikeCount")
def _rating_likes_count(backend, identity, args):
    return backend.rating_likes.get_rating_like_count(_arg(args, "ratingId"))


@query("ratingLikes:isRatingLikedByUser")
def _rating_likes_is_liked(backend, identity, args):
    return backend.rating_likes.is_rating_liked_by_user(_arg(args, "ratingId"), _viewer(identity))


@query("ratingLikes:getRatingLikes")
def _rating_likes_list(backend, identity, args):
    return backend.rating_likes.get_rating_likes(_arg(args, "ratingId"))


@query("ratingLikes:getBatchRatingLikeData")
def _rating_likes_batch(backend, identity, args):
    rating_ids = _string_list(_arg(args, "ratingIds"), "ratingIds")
    return backend.rating_likes.get_batch_rating_like_data(rating_ids, viewer_id=_viewer(identity))


@query("ratingLikes:getUserLikedRatings")
def _rating_likes_for_user(backend, identity, args):
    user_id = args.get("userId") or _viewer(identity)
    return backend.rating_likes.get_user_liked_ratings(user_id, limit=_int(args, "limit", 20))


@mutation("reactions:react")
def _reactions_react(backend, identity, args):
    return backend.reactions.react(_caller(identity), _arg(args, "vibeId"), args.get("emoji"))


@query("reactions:getReactionCounts")
def _reactions_counts(backend, identity, args):
    return backend.reactions.get_reaction_counts(_arg(args, "vibeId"), viewer_id=_viewer(identity))


# =============================================================================
# Follows
# =============================================================================

@mutation("follows:follow")
def _follows_follow(backend, identity, args):
    return backend.follows.follow(_caller(identity), _arg(args, "followingId"))


@mutation("follows:unfollow")
def _follows_unfollow(backend, identity, args):
    return backend.follows.unfollow(_caller(identity), _arg(args, "followingId"))


@query("follows:isFollowing")
def _follows_is_following(backend, identity, args):
    return backend.follows.is_following(_viewer(identity), _arg(args, "followingId"))


@query("follows:getFollowers")
def _follows_followers(backend, identity, args):
    limit, cursor = _page(args)
    return backend.follows.get_followers(_arg(args, "userId"), limit=limit, cursor=cursor)


@query("follows:getFollowing")
def _follows_following(backend, identity, args):
    limit, cursor = _page(args)
    return backend.follows.get_following(_arg(args, "userId"), limit=limit, cursor=cursor)


@query("follows:getFollowStats")
def _follows_stats(backend, identity, args):
    return backend.follows.get_follow_stats(_arg(args, "userId"))


@query("follows:getMutualFollows")
def _follows_mutual(backend, identity, args):
    return backend.follows.get_mutual_follows(
        _arg(args, "userId1"), _arg(args, "userId2"), limit=args.get("limit", 20)
    )


@query("follows:getSuggestedFollows")
def _follows_suggested(backend, identity, args):
    return backend.follows.get_suggested_follows(_viewer(identity), limit=args.get("limit", 10))


# =============================================================================
# Notifications
# =============================================================================

@query("notifications:getNotifications")
def _notifications_list(backend, identity, args):
    limit, cursor = _page(args)
    return backend.notifications.get_notifications(
        _viewer(identity), type=args.get("type"), limit=limit, cursor=cursor
    )


@query("notifications:getUnreadCount")
def _notifications_unread(backend, identity, args):
    return backend.notifications.get_unread_count(_viewer(identity))


@query("notifications:getUnreadCountByType")
def _notifications_unread_by_type(backend, identity, args):
    return backend.notifications.get_unread_count_by_type(_viewer(identity))


@mutation("notifications:markAsRead")
def _notifications_mark_read(backend, identity, args):
    return backend.notifications.mark_as_read(_caller(identity), _arg(args, "notificationId"))


@mutation("notifications:markAllAsRead")
def _notifications_mark_all(backend, identity, args):
    return backend.notifications.mark_all_as_read(_caller(identity), type=args.get("type"))


# =============================================================================
# Tags
# =============================================================================

@query("tags:getPopularTags")
def _tags_popular(backend, identity, args):
    return backend.tags.get_popular_tags(limit=args.get("limit", 20))


@query("tags:searchTags")
def _tags_search(backend, identity, args):
    return backend.tags.search_tags(args.get("query") or "", limit=args.get("limit", 10))


@query("tags:getAllTags")
def _tags_all(backend, identity, args):
    return backend.tags.list_tags()


# =============================================================================
# Admin
# =============================================================================

@query("admin/dashboard:getDashboardStats")
def _admin_stats(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.get_dashboard_stats()


@query("admin/users:getAllUsers")
def _admin_all_users(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.get_all_users(
        page=_int(args, "page", 1),
        page_size=_int(args, "pageSize", 20),
        search=args.get("search"),
        status=args.get("status") or "all",
        sort_by=args.get("sortBy") or "created_at",
        sort_direction=args.get("sortDirection") or "desc",
    )


@query("admin/users:getUserStats")
def _admin_user_stats(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.get_user_stats()


@query("admin/reviews:getAllReviews")
def _admin_all_reviews(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.get_all_reviews(
        page=_int(args, "page", 1),
        page_size=_int(args, "pageSize", 20),
        rating_from=_number(args.get("ratingFrom"), "ratingFrom"),
        rating_to=_number(args.get("ratingTo"), "ratingTo"),
        emoji=args.get("emoji"),
        search=args.get("search"),
        status=args.get("status") or "all",
        sort_by=args.get("sortBy") or "created_at",
        sort_direction=args.get("sortDirection") or "desc",
    )


@mutation("admin/vibes:moderateVibe")
def _admin_moderate_vibe(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.moderate_vibe(_arg(args, "vibeId"), _arg(args, "action"))


@mutation("admin/reviews:flagReview")
def _admin_flag_rating(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.flag_rating(_arg(args, "ratingId"), bool(args.get("flagged", True)))


@mutation("admin/reviews:deleteReview")
def _admin_delete_rating(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.delete_rating(_arg(args, "ratingId"))


@mutation("admin/users:setSuspended")
def _admin_suspend(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.admin.set_user_suspended(
        _arg(args, "userId"), bool(_arg(args, "suspended")), reason=args.get("reason")
    )


@mutation("admin/tags:rebuildTagCounts")
def _admin_rebuild_tags(backend, identity, args):
    backend.admin.require_admin(identity)
    return backend.tags.rebuild_tag_counts()
