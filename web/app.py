"""
vibechecc - Web API

Flask JSON API over the vibechecc services, plus the RPC endpoints,
the Clerk webhook receiver and the crawler files (sitemap, robots).

Run with: python -m web.app
"""

import math
from typing import Optional

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException

from vibechecc import __version__
from vibechecc.auth import ClerkAuthenticator, bearer_token, verify_webhook
from vibechecc.backend import Backend
from vibechecc.config import CLERK_WEBHOOK_SECRET, DEBUG, SITE_URL, SITEMAP_MAX_ENTRIES
from vibechecc.environment import (
    can_access_environment,
    get_access_denial_message,
    get_environment_info,
)
from vibechecc.errors import AuthenticationError, RateLimitError, ValidationError, VibecheccError
from vibechecc import rpc
from vibechecc.pipeline import collect_sitemap_content
from vibechecc.seo import (
    generate_comprehensive_sitemap,
    generate_page_title,
    generate_robots_txt,
    generate_seo_tags,
    profile_seo_config,
    vibe_seo_config,
)

app = Flask(__name__)

# Paths that skip environment access gating
UNGATED_PREFIXES = ("/health", "/webhooks/", "/api/environment")

# Endpoints that answer in the RPC envelope
RPC_PATHS = ("/api/query", "/api/mutation")


# =============================================================================
# Wiring
# =============================================================================

_backend: Optional[Backend] = None
_authenticator: Optional[ClerkAuthenticator] = None


def get_backend() -> Backend:
    """Get the process-wide backend, built from config on first use."""
    global _backend
    if _backend is None:
        _backend = Backend.from_config()
    return _backend


def get_authenticator() -> ClerkAuthenticator:
    global _authenticator
    if _authenticator is None:
        _authenticator = ClerkAuthenticator()
    return _authenticator


def get_analytics():
    return get_backend().analytics


def get_webhook_secret() -> str:
    return CLERK_WEBHOOK_SECRET


def current_identity():
    """
    The caller's identity from the bearer token, or None when anonymous.

    A token that fails verification is treated as anonymous so public
    reads keep working; require_identity raises the verification error.
    """
    if "identity" not in g:
        g.identity = None
        g.auth_error = None
        token = bearer_token(request.headers.get("Authorization"))
        if token:
            try:
                g.identity = get_authenticator().verify_token(token)
            except AuthenticationError as e:
                print(f"[web] Treating request as anonymous: {e.message}")
                g.auth_error = e
    return g.identity


def require_identity():
    """
    Raises:
        AuthenticationError: No token was sent, or it did not verify.
    """
    identity = current_identity()
    if identity is None:
        raise g.auth_error or AuthenticationError("Authentication required")
    return identity


def current_user_id() -> Optional[str]:
    identity = current_identity()
    return identity.subject if identity else None


def require_user_id() -> str:
    return require_identity().subject


# =============================================================================
# Request helpers
# =============================================================================

def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _float_arg(name: str) -> Optional[float]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a number")
    return number


def _list_arg(name: str) -> Optional[list]:
    """Comma-separated or repeated query parameter."""
    values = [v for raw in request.args.getlist(name) for v in raw.split(",") if v.strip()]
    return values or None


def _json(value, status: int = 200):
    return jsonify(rpc.to_json(value)), status


# =============================================================================
# Hooks and error handlers
# =============================================================================

@app.before_request
def enforce_environment_access():
    """Restrict dev and preview deployments to flagged users."""
    if request.path.startswith(UNGATED_PREFIXES):
        return None

    hostname = request.host
    info = get_environment_info(hostname)
    if not info.requires_dev_access:
        return None

    if can_access_environment(hostname, current_user_id(), get_analytics()):
        return None

    message = get_access_denial_message(info)
    return jsonify({"error": message}), 403


@app.errorhandler(VibecheccError)
def handle_vibechecc_error(error: VibecheccError):
    if request.path in RPC_PATHS:
        response = jsonify(rpc.failure(error.message))
    else:
        response = jsonify(error.to_dict())
    response.status_code = error.status_code
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(error.retry_after)
    return response


@app.errorhandler(404)
def handle_not_found(error):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(405)
def handle_method_not_allowed(error):
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.description}), error.code
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    if request.path in RPC_PATHS:
        return jsonify(rpc.failure("Internal server error")), 500
    return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# Health
# =============================================================================

@app.route("/health")
def health():
    backend = get_backend()
    return jsonify({
        "status": "ok",
        "version": __version__,
        "storage": backend.storage.name,
        "analytics": backend.analytics.enabled,
        "auth": get_authenticator().enabled,
    })


@app.route("/api/environment")
def api_environment():
    info = get_environment_info(request.host)
    return jsonify({
        "subdomain": info.subdomain,
        "is_dev_environment": info.is_dev_environment,
        "is_ephemeral_environment": info.is_ephemeral_environment,
        "requires_dev_access": info.requires_dev_access,
    })


# =============================================================================
# RPC
# =============================================================================

def _rpc(kind: str):
    data = _body()
    value = rpc.call(
        get_backend(),
        data.get("path"),
        data.get("args"),
        identity=current_identity(),
        kind=kind,
    )
    return jsonify(rpc.success(value))


@app.route("/api/query", methods=["POST"])
def api_query():
    return _rpc(rpc.QUERY)


@app.route("/api/mutation", methods=["POST"])
def api_mutation():
    return _rpc(rpc.MUTATION)


# =============================================================================
# Users
# =============================================================================

@app.route("/api/users/me")
def api_current_user():
    user_id = current_user_id()
    user = get_backend().users.get_by_external_id(user_id) if user_id else None
    return _json(user)


@app.route("/api/users/me", methods=["PATCH"])
def api_update_profile():
    data = _body()
    user = get_backend().users.update_profile(
        require_user_id(),
        username=data.get("username"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        bio=data.get("bio"),
        image_url=data.get("image_url"),
        socials=data.get("socials"),
    )
    return _json(user)


@app.route("/api/users/me/onboarding")
def api_onboarding_status():
    return _json(get_backend().users.get_onboarding_status(current_user_id()))


@app.route("/api/users/me/onboarding", methods=["POST"])
def api_complete_onboarding():
    data = _body()
    user = get_backend().users.complete_onboarding(
        require_user_id(),
        interests=data.get("interests"),
        username=data.get("username"),
        bio=data.get("bio"),
        image_url=data.get("image_url"),
    )
    return _json(user)


@app.route("/api/users")
def api_list_users():
    users = get_backend().users.list_users(_int_arg("limit", 50))
    return _json([u.to_public_dict() for u in users])


@app.route("/api/users/<user_id>")
def api_get_user(user_id):
    profile = get_backend().users.public_profile(user_id)
    if profile is None:
        return jsonify({"error": "User not found"}), 404
    return _json(profile)


@app.route("/api/users/by-username/<username>")
def api_get_user_by_username(username):
    user = get_backend().users.get_by_username(username)
    if user is None:
        return jsonify({"error": "User not found"}), 404
    return _json(user.to_public_dict())


@app.route("/api/users/<user_id>/vibes")
def api_user_vibes(user_id):
    vibes = get_backend().vibes.get_by_user(user_id, viewer_id=current_user_id(), limit=_int_arg("limit", 50))
    return _json(vibes)


@app.route("/api/users/<user_id>/ratings")
def api_user_ratings(user_id):
    return _json(get_backend().ratings.get_user_ratings(user_id, limit=_int_arg("limit", 50)))


# =============================================================================
# Follows
# =============================================================================

@app.route("/api/users/<user_id>/follow", methods=["POST"])
def api_follow(user_id):
    follow_id = get_backend().follows.follow(require_user_id(), user_id)
    return _json({"id": follow_id}, 201)


@app.route("/api/users/<user_id>/follow", methods=["DELETE"])
def api_unfollow(user_id):
    return _json(get_backend().follows.unfollow(require_user_id(), user_id))


@app.route("/api/users/<user_id>/is-following")
def api_is_following(user_id):
    return _json({"following": get_backend().follows.is_following(current_user_id(), user_id)})


@app.route("/api/users/<user_id>/followers")
def api_followers(user_id):
    page = get_backend().follows.get_followers(
        user_id, limit=_int_arg("limit", 20), cursor=request.args.get("cursor")
    )
    return _json(page)


@app.route("/api/users/<user_id>/following")
def api_following(user_id):
    page = get_backend().follows.get_following(
        user_id, limit=_int_arg("limit", 20), cursor=request.args.get("cursor")
    )
    return _json(page)


@app.route("/api/users/<user_id>/follow-stats")
def api_follow_stats(user_id):
    return _json(get_backend().follows.get_follow_stats(user_id))


@app.route("/api/users/<user_id>/mutual/<other_id>")
def api_mutual_follows(user_id, other_id):
    return _json(get_backend().follows.get_mutual_follows(user_id, other_id, limit=_int_arg("limit", 20)))


@app.route("/api/follows/suggested")
def api_suggested_follows():
    return _json(get_backend().follows.get_suggested_follows(current_user_id(), limit=_int_arg("limit", 10)))


# =============================================================================
# Vibes
# =============================================================================

@app.route("/api/vibes")
def api_vibes():
    page = get_backend().vibes.get_all(limit=_int_arg("limit", 20), cursor=request.args.get("cursor"))
    return _json(page)


@app.route("/api/vibes", methods=["POST"])
def api_create_vibe():
    data = _body()
    vibe_id = get_backend().vibes.create(
        require_user_id(),
        title=data.get("title"),
        description=data.get("description"),
        image=data.get("image"),
        tags=data.get("tags"),
    )
    return _json({"id": vibe_id}, 201)


@app.route("/api/vibes/top-rated")
def api_top_rated():
    return _json(get_backend().vibes.get_top_rated(limit=_int_arg("limit", 10)))


@app.route("/api/vibes/trending")
def api_trending():
    hours = _float_arg("hours")
    vibes = get_backend().vibes.get_trending(
        limit=_int_arg("limit", 20),
        time_window_hours=24 if hours is None else hours,
    )
    return _json(vibes)


@app.route("/api/vibes/following")
def api_following_vibes():
    page = get_backend().vibes.get_following_vibes(
        current_user_id(), limit=_int_arg("limit", 20), cursor=request.args.get("cursor")
    )
    return _json(page)


@app.route("/api/vibes/search")
def api_search_vibes():
    results = get_backend().vibes.search(
        query=request.args.get("q"),
        tags=_list_arg("tags"),
        min_rating=_float_arg("min_rating"),
        max_rating=_float_arg("max_rating"),
        sort=request.args.get("sort", "relevance"),
        limit=_int_arg("limit", 20),
        cursor=request.args.get("cursor"),
    )
    return _json(results)


@app.route("/api/vibes/<vibe_id>")
def api_get_vibe(vibe_id):
    vibe = get_backend().vibes.get_by_id(vibe_id, viewer_id=current_user_id())
    if vibe is None:
        return jsonify({"error": "Vibe not found"}), 404
    return _json(vibe)


@app.route("/api/vibes/<vibe_id>", methods=["PATCH"])
def api_update_vibe(vibe_id):
    data = _body()
    vibe = get_backend().vibes.update(
        require_user_id(),
        vibe_id,
        title=data.get("title"),
        description=data.get("description"),
        image=data.get("image"),
        tags=data.get("tags"),
    )
    return _json(vibe)


@app.route("/api/vibes/<vibe_id>", methods=["DELETE"])
def api_delete_vibe(vibe_id):
    return _json(get_backend().vibes.delete(require_user_id(), vibe_id))


@app.route("/api/tags/<tag>/vibes")
def api_vibes_by_tag(tag):
    return _json(get_backend().vibes.get_by_tag(tag, limit=_int_arg("limit", 10)))


# =============================================================================
# Ratings and reactions
# =============================================================================

@app.route("/api/vibes/<vibe_id>/ratings")
def api_vibe_ratings(vibe_id):
    return _json(get_backend().ratings.get_ratings_for_vibe(vibe_id))


@app.route("/api/vibes/<vibe_id>/ratings", methods=["POST"])
def api_add_rating(vibe_id):
    data = _body()
    rating_id = get_backend().ratings.add_rating(
        require_user_id(),
        vibe_id,
        emoji=data.get("emoji"),
        value=data.get("value"),
        review=data.get("review"),
        tags=data.get("tags"),
    )
    return _json({"id": rating_id})


@app.route("/api/vibes/<vibe_id>/quick-react", methods=["POST"])
def api_quick_react(vibe_id):
    rating_id = get_backend().ratings.quick_react(require_user_id(), vibe_id, _body().get("emoji"))
    return _json({"id": rating_id}, 201)


@app.route("/api/vibes/<vibe_id>/emoji-stats")
def api_emoji_stats(vibe_id):
    return _json(get_backend().ratings.get_emoji_rating_stats(vibe_id))


@app.route("/api/vibes/<vibe_id>/reactions")
def api_reaction_counts(vibe_id):
    return _json(get_backend().reactions.get_reaction_counts(vibe_id, viewer_id=current_user_id()))


@app.route("/api/vibes/<vibe_id>/reactions", methods=["POST"])
def api_react(vibe_id):
    return _json(get_backend().reactions.react(require_user_id(), vibe_id, _body().get("emoji")))


@app.route("/api/ratings/<rating_id>/like", methods=["POST"])
def api_like_rating(rating_id):
    return _json(get_backend().rating_likes.like_rating(require_user_id(), rating_id))


@app.route("/api/ratings/<rating_id>/likes")
def api_rating_likes(rating_id):
    backend = get_backend()
    result = backend.rating_likes.get_rating_likes(rating_id)
    result["is_liked"] = backend.rating_likes.is_rating_liked_by_user(rating_id, current_user_id())
    return _json(result)


# =============================================================================
# Notifications
# =============================================================================

@app.route("/api/notifications")
def api_notifications():
    page = get_backend().notifications.get_notifications(
        current_user_id(),
        type=request.args.get("type") or None,
        limit=_int_arg("limit", 20),
        cursor=request.args.get("cursor"),
    )
    return _json(page)


@app.route("/api/notifications/unread-count")
def api_unread_count():
    return _json({"count": get_backend().notifications.get_unread_count(current_user_id())})


@app.route("/api/notifications/unread-count-by-type")
def api_unread_count_by_type():
    return _json(get_backend().notifications.get_unread_count_by_type(current_user_id()))


@app.route("/api/notifications/<notification_id>/read", methods=["POST"])
def api_mark_as_read(notification_id):
    return _json(get_backend().notifications.mark_as_read(require_user_id(), notification_id))


@app.route("/api/notifications/read-all", methods=["POST"])
def api_mark_all_as_read():
    return _json(get_backend().notifications.mark_all_as_read(require_user_id(), type=_body().get("type")))


# =============================================================================
# Tags
# =============================================================================

@app.route("/api/tags")
def api_tags():
    return _json(get_backend().tags.list_tags())


@app.route("/api/tags/popular")
def api_popular_tags():
    return _json(get_backend().tags.get_popular_tags(limit=_int_arg("limit", 20)))


@app.route("/api/tags/search")
def api_search_tags():
    return _json(get_backend().tags.search_tags(request.args.get("q", ""), limit=_int_arg("limit", 10)))


# =============================================================================
# Admin
# =============================================================================

def _admin():
    backend = get_backend()
    backend.admin.require_admin(require_identity())
    return backend.admin


@app.route("/api/admin/stats")
def api_admin_stats():
    return _json(_admin().get_dashboard_stats())


@app.route("/api/admin/users")
def api_admin_users():
    return _json(_admin().get_all_users(
        page=_int_arg("page", 1),
        page_size=_int_arg("page_size", 20),
        search=request.args.get("search") or None,
        status=request.args.get("status", "all"),
        sort_by=request.args.get("sort_by", "created_at"),
        sort_direction=request.args.get("sort_direction", "desc"),
    ))


@app.route("/api/admin/users/stats")
def api_admin_user_stats():
    return _json(_admin().get_user_stats())


@app.route("/api/admin/reviews")
def api_admin_reviews():
    return _json(_admin().get_all_reviews(
        page=_int_arg("page", 1),
        page_size=_int_arg("page_size", 20),
        rating_from=_int_arg("rating_from"),
        rating_to=_int_arg("rating_to"),
        emoji=request.args.get("emoji") or None,
        search=request.args.get("search") or None,
        status=request.args.get("status", "all"),
        sort_by=request.args.get("sort_by", "created_at"),
        sort_direction=request.args.get("sort_direction", "desc"),
    ))


@app.route("/api/admin/vibes/<vibe_id>/moderate", methods=["POST"])
def api_admin_moderate_vibe(vibe_id):
    return _json(_admin().moderate_vibe(vibe_id, _body().get("action")))


@app.route("/api/admin/ratings/<rating_id>/flag", methods=["POST"])
def api_admin_flag_rating(rating_id):
    return _json(_admin().flag_rating(rating_id, bool(_body().get("flagged", True))))


@app.route("/api/admin/ratings/<rating_id>", methods=["DELETE"])
def api_admin_delete_rating(rating_id):
    return _json(_admin().delete_rating(rating_id))


@app.route("/api/admin/users/<user_id>/suspend", methods=["POST"])
def api_admin_suspend_user(user_id):
    data = _body()
    return _json(_admin().set_user_suspended(user_id, bool(data.get("suspended", True)), reason=data.get("reason")))


@app.route("/api/admin/tags/rebuild", methods=["POST"])
def api_admin_rebuild_tags():
    _admin()
    return _json(get_backend().tags.rebuild_tag_counts())


# =============================================================================
# Webhooks
# =============================================================================

def handle_clerk_event(backend: Backend, event: dict) -> dict:
    """Apply a verified Clerk event to the user store."""
    event_type = event.get("type")
    data = event.get("data") or {}

    if event_type in ("user.created", "user.updated"):
        user = backend.users.upsert_from_clerk(data)
        if event_type == "user.created":
            backend.analytics.identify(user.external_id, {"username": user.username})
        return {"success": True, "user_id": user.external_id}

    if event_type == "user.deleted":
        deleted = backend.users.delete_from_clerk(data.get("id"))
        return {"success": True, "deleted": deleted}

    print(f"[webhooks] Ignored Clerk webhook event type: {event_type}")
    return {"success": True, "ignored": True}


@app.route("/webhooks/clerk", methods=["POST"])
def clerk_webhook():
    event = verify_webhook(request.get_data(as_text=True), request.headers, get_webhook_secret())
    return jsonify(handle_clerk_event(get_backend(), event))


# =============================================================================
# Crawler files and SEO
# =============================================================================

def _sitemap_output():
    content = collect_sitemap_content(get_backend().storage)
    return generate_comprehensive_sitemap(
        SITE_URL,
        vibes=content.vibes,
        users=content.users,
        tags=content.tags,
        max_entries=SITEMAP_MAX_ENTRIES,
    )


@app.route("/sitemap.xml")
def sitemap_xml():
    output = _sitemap_output()
    body = output.sitemap_index if output.needs_index else output.sitemap
    return Response(body, mimetype="application/xml")


@app.route("/sitemap-<int:number>.xml")
def sitemap_part(number):
    output = _sitemap_output()
    if not output.needs_index or not 1 <= number <= len(output.sitemaps):
        return jsonify({"error": "Sitemap not found"}), 404
    return Response(output.sitemaps[number - 1], mimetype="application/xml")


@app.route("/robots.txt")
def robots_txt():
    return Response(generate_robots_txt(SITE_URL), mimetype="text/plain")


@app.route("/api/seo/vibes/<vibe_id>")
def api_vibe_seo(vibe_id):
    vibe = get_backend().vibes.get_by_id(vibe_id)
    if vibe is None:
        return jsonify({"error": "Vibe not found"}), 404
    config = vibe_seo_config(vibe, SITE_URL)
    return jsonify({"title": generate_page_title(vibe["title"]), "tags": generate_seo_tags(config)})


@app.route("/api/seo/users/<username>")
def api_profile_seo(username):
    user = get_backend().users.get_by_username(username)
    if user is None:
        return jsonify({"error": "User not found"}), 404
    config = profile_seo_config(user.to_public_dict(), SITE_URL)
    return jsonify({"title": config.title, "tags": generate_seo_tags(config)})


if __name__ == "__main__":
    print("=" * 50)
    print("vibechecc API")
    print("=" * 50)
    print("Listening on http://localhost:5001")
    print("Press Ctrl+C to stop")
    print("=" * 50)
    app.run(debug=DEBUG, port=5001)
