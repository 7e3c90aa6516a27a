"""
Error types for vibechecc.

Services raise these; the web layer turns them into JSON responses using
each error's ``status_code``.
"""

from typing import Any, Dict, Optional


class VibecheccError(Exception):
    """
    Base exception for application errors.

    Attributes:
        message: Human-readable message, safe to show to the caller.
        status_code: HTTP status the web layer should answer with.
        details: Optional structured context.
    """

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(VibecheccError):
    """Input failed validation."""
    status_code = 400


class AuthenticationError(VibecheccError):
    """Caller is not authenticated or the token is invalid."""
    status_code = 401


class AuthorizationError(VibecheccError):
    """Caller is authenticated but not allowed to do this."""
    status_code = 403


class NotFoundError(VibecheccError):
    """Requested entity does not exist."""
    status_code = 404


class ConflictError(VibecheccError):
    """Operation conflicts with existing state (duplicate follow, username taken)."""
    status_code = 409


class RateLimitError(VibecheccError):
    """Too many requests for an action within its window."""
    status_code = 429

    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message, {"retry_after": retry_after})
        self.retry_after = retry_after


class StorageError(VibecheccError):
    """The storage backend failed or returned an unexpected response."""
    status_code = 502
