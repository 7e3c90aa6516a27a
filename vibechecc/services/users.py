"""
User profiles: lookup, onboarding, profile edits and Clerk webhook sync.
"""

from typing import Any, Dict, List, Optional

from vibechecc.errors import ConflictError, NotFoundError, ValidationError
from vibechecc.models import User
from vibechecc.storage import USERS
from vibechecc.utils import clamp_limit, parse_datetime, utcnow
from vibechecc.validation import (
    validate_bio,
    validate_string,
    validate_tags,
    validate_url,
    validate_username,
)

MAX_INTERESTS = 50


class UserService:
    """Application-side user profiles keyed by Clerk user id."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_by_external_id(self, external_id: Optional[str]) -> Optional[User]:
        if not external_id:
            return None
        record = self.storage.find_one(USERS, {"external_id": external_id})
        return User.from_record(record) if record else None

    def get_by_username(self, username: Optional[str]) -> Optional[User]:
        if not username:
            return None
        record = self.storage.find_one(USERS, {"username": username})
        return User.from_record(record) if record else None

    def require_user(self, external_id: str) -> User:
        user = self.get_by_external_id(external_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_many(self, external_ids) -> Dict[str, User]:
        """Map external_id -> User for the ids that exist."""
        users = {}
        for external_id in set(external_ids):
            user = self.get_by_external_id(external_id)
            if user is not None:
                users[external_id] = user
        return users

    def public_profile(self, external_id: Optional[str]) -> Optional[dict]:
        user = self.get_by_external_id(external_id)
        return user.to_public_dict() if user else None

    def list_users(self, limit: int = 50) -> List[User]:
        limit = clamp_limit(limit, default=50)
        records = self.storage.list_records(USERS, sort_field="created_at", limit=limit)
        return [User.from_record(r) for r in records]

    # =========================================================================
    # Profile
    # =========================================================================

    def ensure_user_exists(self, external_id: str, **fields) -> User:
        """
        Return the user's profile, creating a bare one on first use.

        Extra keyword fields are only applied when the profile is created.
        """
        user = self.get_by_external_id(external_id)
        if user is not None:
            return user

        user = User(external_id=external_id, **fields)
        user.id, created = self.storage.insert_unique(USERS, {"external_id": external_id}, user.to_record())
        if not created:
            return self.get_by_external_id(external_id)
        print(f"[users] Created profile for {external_id}")
        return user

    def _save(self, user: User, changes: Dict[str, Any]) -> User:
        changes["updated_at"] = utcnow()
        stored = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in changes.items()}
        record = self.storage.update(USERS, user.id, stored)
        return User.from_record(record)

    def update_profile(
        self,
        external_id: str,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        bio: Optional[str] = None,
        image_url: Optional[str] = None,
        socials: Optional[Dict[str, str]] = None,
    ) -> User:
        """
        Update profile fields. Only fields that are passed change.

        Raises:
            ValidationError: If a field is invalid.
            ConflictError: If the username belongs to someone else.
        """
        user = self.ensure_user_exists(external_id)
        changes: Dict[str, Any] = {}

        if username is not None:
            username = validate_username(username)
            if username and username != user.username:
                existing = self.get_by_username(username)
                if existing is not None and existing.external_id != external_id:
                    raise ConflictError("Username is already taken")
            changes["username"] = username

        if first_name is not None:
            changes["first_name"] = validate_string(first_name, max_length=100, field_name="First name")
        if last_name is not None:
            changes["last_name"] = validate_string(last_name, max_length=100, field_name="Last name")
        if bio is not None:
            changes["bio"] = validate_bio(bio)
        if image_url is not None:
            changes["image_url"] = validate_url(image_url)
        if socials is not None:
            if not isinstance(socials, dict):
                raise ValidationError("Socials must be an object")
            changes["socials"] = {
                str(k): validate_string(v, max_length=500, field_name=f"Social {k}") or ""
                for k, v in socials.items()
            }

        if not changes:
            return user
        return self._save(user, changes)

    # =========================================================================
    # Onboarding and interests
    # =========================================================================

    def complete_onboarding(
        self,
        external_id: str,
        interests: Optional[List[str]] = None,
        username: Optional[str] = None,
        bio: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> User:
        user = self.update_profile(external_id, username=username, bio=bio, image_url=image_url)
        changes: Dict[str, Any] = {"onboarding_completed": True}
        if interests is not None:
            changes["interests"] = validate_tags(interests)
        return self._save(user, changes)

    def get_onboarding_status(self, external_id: Optional[str]) -> dict:
        user = self.get_by_external_id(external_id)
        if user is None:
            return {"completed": False, "needs_onboarding": True, "user": None}
        return {
            "completed": user.onboarding_completed,
            "needs_onboarding": not user.onboarding_completed,
            "user": user.to_public_dict(),
        }

    def add_interests(self, external_id: str, tags: List[str]) -> Optional[User]:
        """Merge tags into a user's interests, keeping order and skipping duplicates."""
        user = self.get_by_external_id(external_id)
        if user is None or not tags:
            return user

        interests = list(user.interests)
        for tag in tags:
            tag = (tag or "").strip().lower()
            if tag and tag not in interests:
                interests.append(tag)

        if interests == user.interests:
            return user
        return self._save(user, {"interests": interests[-MAX_INTERESTS:]})

    # =========================================================================
    # Clerk webhook sync
    # =========================================================================

    @staticmethod
    def fields_from_clerk(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Map a Clerk user payload to profile fields.

        Clerk sends epoch-millisecond timestamps and snake_case keys.
        """
        fields: Dict[str, Any] = {
            "username": data.get("username"),
            "first_name": data.get("first_name"),
            "last_name": data.get("last_name"),
            "image_url": data.get("image_url"),
            "profile_image_url": data.get("profile_image_url"),
            "has_image": bool(data.get("has_image", False)),
            "primary_email_address_id": data.get("primary_email_address_id"),
        }
        for source, target in (
            ("last_sign_in_at", "last_sign_in_at"),
            ("last_active_at", "last_active_at"),
        ):
            value = parse_datetime(data.get(source))
            if value is not None:
                fields[target] = value
        return fields

    def upsert_from_clerk(self, data: Dict[str, Any]) -> User:
        """Create or update the profile for a user.created / user.updated event."""
        external_id = data.get("id")
        if not external_id:
            raise ValidationError("Clerk payload is missing the user id")

        fields = self.fields_from_clerk(data)
        existing = self.get_by_external_id(external_id)

        if existing is None:
            created_at = parse_datetime(data.get("created_at")) or utcnow()
            user = User(external_id=external_id, created_at=created_at, **fields)
            user.id, created = self.storage.insert_unique(USERS, {"external_id": external_id}, user.to_record())
            if created:
                print(f"[users] Synced new user {external_id} from Clerk")
                return user
            existing = self.get_by_external_id(external_id)

        return self._save(existing, fields)

    def delete_from_clerk(self, clerk_user_id: Optional[str]) -> bool:
        """Remove the profile for a user.deleted event. Missing users are ignored."""
        user = self.get_by_external_id(clerk_user_id)
        if user is None:
            print(f"[users] Delete for unknown user {clerk_user_id}, ignoring")
            return False
        self.storage.delete(USERS, user.id)
        print(f"[users] Deleted user {clerk_user_id}")
        return True
