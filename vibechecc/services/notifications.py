"""
In-app notifications: creation, follower fan-out, listing and read state.
"""

from typing import Any, Dict, List, Optional

from vibechecc.errors import AuthorizationError, NotFoundError, ValidationError
from vibechecc.models import NOTIFICATION_TYPES, Notification
from vibechecc.storage import NOTIFICATIONS
from vibechecc.utils import clamp_limit


def _check_type(type: Optional[str]) -> None:
    if type is not None and type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type}")


class NotificationService:
    """
    Notifications for a recipient (``user_id``) caused by another user
    (``trigger_user_id``). Both are external ids.
    """

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def create_notification(
        self,
        user_id: str,
        type: str,
        trigger_user_id: str,
        target_id: str,
        title: str,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Store a notification.

        Returns:
            The notification id, or None when the user would be notifying
            themselves.

        Raises:
            NotFoundError: If either user does not exist.
        """
        if user_id == trigger_user_id:
            return None

        users = self.backend.users
        if users.get_by_external_id(user_id) is None:
            raise NotFoundError("Receiving user not found")
        if users.get_by_external_id(trigger_user_id) is None:
            raise NotFoundError("Triggering user not found")

        notification = Notification(
            user_id=user_id,
            type=type,
            trigger_user_id=trigger_user_id,
            target_id=target_id,
            title=title,
            description=description,
            metadata=metadata or {},
        )
        return self.storage.insert(NOTIFICATIONS, notification.to_record())

    def create_follower_notifications(
        self,
        trigger_user_id: str,
        type: str,
        target_id: str,
        title: str,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        max_followers: int = 100,
    ) -> int:
        """
        Notify up to ``max_followers`` followers of the triggering user.

        A failure for one follower does not stop the rest.

        Returns:
            Number of notifications created.
        """
        follower_ids = self.backend.follows.get_follower_ids(trigger_user_id, limit=max_followers)
        created = 0
        for follower_id in follower_ids:
            try:
                if self.create_notification(
                    user_id=follower_id,
                    type=type,
                    trigger_user_id=trigger_user_id,
                    target_id=target_id,
                    title=title,
                    description=description,
                    metadata=metadata,
                ):
                    created += 1
            except NotFoundError as e:
                print(f"[notifications] Skipping follower {follower_id}: {e.message}")
        return created

    def _enrich(self, records: List[dict]) -> List[dict]:
        trigger_users = self.backend.users.get_many(r["trigger_user_id"] for r in records)
        enriched = []
        for record in records:
            data = Notification.from_record(record).to_dict()
            trigger = trigger_users.get(data["trigger_user_id"])
            data["trigger_user"] = trigger.to_public_dict() if trigger else None
            enriched.append(data)
        return enriched

    def get_notifications(
        self,
        user_id: Optional[str],
        type: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> dict:
        """
        Newest-first notifications for a user, optionally of one type.

        Returns:
            {"notifications": [...], "next_cursor": str | None, "has_more": bool}
        """
        if not user_id:
            return {"notifications": [], "next_cursor": None, "has_more": False}

        _check_type(type)
        filters = {"user_id": user_id}
        if type:
            filters["type"] = type

        page = self.storage.paginate(
            NOTIFICATIONS,
            filters=filters,
            sort_field="created_at",
            descending=True,
            cursor=cursor,
            limit=clamp_limit(limit),
        )
        return {
            "notifications": self._enrich(page.items),
            "next_cursor": page.continue_cursor,
            "has_more": not page.is_done,
        }

    def mark_as_read(self, user_id: str, notification_id: str) -> dict:
        record = self.storage.get(NOTIFICATIONS, notification_id)
        if record is None:
            raise NotFoundError("Notification not found")
        if record.get("user_id") != user_id:
            raise AuthorizationError("Not authorized to update this notification")
        self.storage.update(NOTIFICATIONS, notification_id, {"read": True})
        return {"success": True}

    def _unread(self, user_id: str, type: Optional[str] = None) -> List[dict]:
        filters: Dict[str, Any] = {"user_id": user_id, "read": False}
        if type:
            filters["type"] = type
        return self.storage.list_records(NOTIFICATIONS, filters=filters)

    def mark_all_as_read(self, user_id: str, type: Optional[str] = None) -> dict:
        _check_type(type)
        unread = self._unread(user_id, type)
        for record in unread:
            self.storage.update(NOTIFICATIONS, record["_id"], {"read": True})
        return {"success": True, "updated_count": len(unread)}

    def get_unread_count(self, user_id: Optional[str]) -> int:
        if not user_id:
            return 0
        return len(self._unread(user_id))

    def get_unread_count_by_type(self, user_id: Optional[str]) -> Dict[str, int]:
        counts = {t: 0 for t in NOTIFICATION_TYPES}
        counts["total"] = 0
        if not user_id:
            return counts

        unread = self._unread(user_id)
        for record in unread:
            if record.get("type") in counts:
                counts[record["type"]] += 1
        counts["total"] = len(unread)
        return counts
