"""
Authentication against Clerk.

Session tokens are RS256 JWTs signed by Clerk and verified with the keys
published at the instance's JWKS endpoint. Webhooks are signed with the
Svix scheme: HMAC-SHA256 over "{svix-id}.{svix-timestamp}.{body}" using
the base64 secret after the "whsec_" prefix.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import jwt

from vibechecc.config import CLERK_AUTHORIZED_PARTIES, CLERK_ISSUER, CLERK_JWKS_URL
from vibechecc.errors import AuthenticationError

ADMIN_ROLES = ("admin", "org:admin")

# Maximum age/skew of a webhook timestamp
WEBHOOK_TOLERANCE_SECONDS = 5 * 60


@dataclass
class Identity:
    """
    The verified caller.

    Attributes:
        subject: Clerk user id (the token's "sub").
        roles: Custom role claims, if the session template adds them.
        org_role: Active organization role ("org:admin", "org:member", ...).
        claims: All verified claims.
    """
    subject: str
    roles: List[str] = field(default_factory=list)
    org_role: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_admin_role(self) -> bool:
        return self.org_role in ADMIN_ROLES or any(r in ADMIN_ROLES for r in self.roles)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Identity":
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        return cls(
            subject=claims["sub"],
            roles=list(roles),
            org_role=claims.get("org_role"),
            claims=dict(claims),
        )


class ClerkAuthenticator:
    """
    Verifies Clerk session tokens.

    Configuration is pulled from vibechecc.config unless passed in:
    - CLERK_JWKS_URL: JWKS endpoint of the Clerk instance
    - CLERK_ISSUER: expected "iss" (optional)
    - CLERK_AUTHORIZED_PARTIES: accepted "azp" values (optional)
    """

    def __init__(
        self,
        jwks_url: str = None,
        issuer: str = None,
        authorized_parties: Optional[List[str]] = None,
        leeway: int = 5,
    ):
        self.jwks_url = jwks_url if jwks_url is not None else CLERK_JWKS_URL
        self.issuer = issuer if issuer is not None else CLERK_ISSUER
        self.authorized_parties = (
            authorized_parties if authorized_parties is not None else CLERK_AUTHORIZED_PARTIES
        )
        self.leeway = leeway
        self._jwks_client: Optional[jwt.PyJWKClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.jwks_url)

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(self.jwks_url, cache_keys=True)
        return self._jwks_client

    def verify_token(self, token: str) -> Identity:
        """
        Verify a session token and return the caller's identity.

        Raises:
            AuthenticationError: If authentication is not configured, or
                the token is malformed, expired, wrongly signed or issued
                for another party.
        """
        if not self.enabled:
            raise AuthenticationError("Authentication is not configured")
        if not token:
            raise AuthenticationError("Missing session token")

        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            options = {"require": ["exp", "sub"], "verify_aud": False}
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer or None,
                leeway=self.leeway,
                options=options,
            )
        except jwt.PyJWTError as e:
            raise AuthenticationError(f"Invalid session token: {e}")

        if self.authorized_parties:
            azp = claims.get("azp")
            if azp and azp not in self.authorized_parties:
                raise AuthenticationError("Invalid session token: unauthorized party")

        return Identity.from_claims(claims)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an "Authorization: Bearer <token>" header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# =============================================================================
# Webhooks
# =============================================================================

def _decode_secret(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_"):]
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError):
        raise AuthenticationError("Webhook secret is not valid base64")


def sign_webhook(payload: Union[str, bytes], msg_id: str, timestamp: int, secret: str) -> str:
    """Compute the "v1,<signature>" value Svix would send for a payload."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    to_sign = f"{msg_id}.{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(_decode_secret(secret), to_sign, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def verify_webhook(
    payload: Union[str, bytes],
    headers: Mapping[str, str],
    secret: str,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Verify a Clerk (Svix) webhook and return the parsed event.

    Args:
        payload: Raw request body.
        headers: Request headers (svix-id, svix-timestamp, svix-signature).
        secret: Signing secret ("whsec_...").
        now: Current epoch seconds (for testing).

    Raises:
        AuthenticationError: Missing headers, stale timestamp or bad signature.
    """
    if not secret:
        raise AuthenticationError("Webhook secret is not configured")

    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signatures = headers.get("svix-signature")
    if not (msg_id and timestamp and signatures):
        raise AuthenticationError("Missing webhook signature headers")

    try:
        ts = int(timestamp)
    except ValueError:
        raise AuthenticationError("Invalid webhook timestamp")

    now = time.time() if now is None else now
    if abs(now - ts) > WEBHOOK_TOLERANCE_SECONDS:
        raise AuthenticationError("Webhook timestamp is outside the tolerance window")

    expected = sign_webhook(payload, msg_id, ts, secret).split(",", 1)[1]
    for candidate in signatures.split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(signature, expected):
            break
    else:
        raise AuthenticationError("Invalid webhook signature")

    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    try:
        return json.loads(payload)
    except ValueError:
        raise AuthenticationError("Webhook payload is not valid JSON")
