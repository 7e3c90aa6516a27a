"""
Environment access gating.

Deployments on the "dev" subdomain and on "pr-*" preview subdomains are
restricted to users with the "dev-environment-access" feature flag.
Localhost is never restricted.
"""

from dataclasses import dataclass
from typing import Optional

DEV_ACCESS_FLAG = "dev-environment-access"

LOCAL_HOSTS = ("localhost", "127.0.0.1")


@dataclass
class EnvironmentInfo:
    subdomain: Optional[str]
    is_dev_environment: bool
    is_ephemeral_environment: bool
    requires_dev_access: bool


def _strip_port(hostname: str) -> str:
    return (hostname or "").split(":", 1)[0].lower()


def is_local_host(hostname: str) -> bool:
    host = _strip_port(hostname)
    return any(local in host for local in LOCAL_HOSTS)


def get_subdomain(hostname: str) -> Optional[str]:
    """
    First label of a hostname with more than two labels.

    "dev.vibechecc.io" -> "dev", "vibechecc.io" -> None, localhost -> None.
    """
    host = _strip_port(hostname)
    if not host or is_local_host(host):
        return None
    parts = host.split(".")
    if len(parts) > 2:
        return parts[0]
    return None


def get_environment_info(hostname: str) -> EnvironmentInfo:
    subdomain = get_subdomain(hostname)
    is_dev = subdomain == "dev"
    is_ephemeral = bool(subdomain and subdomain.startswith("pr-"))
    return EnvironmentInfo(
        subdomain=subdomain,
        is_dev_environment=is_dev,
        is_ephemeral_environment=is_ephemeral,
        requires_dev_access=is_dev or is_ephemeral,
    )


def can_access_environment(hostname: str, user_id: Optional[str], analytics) -> bool:
    """
    Decide whether a user may use the deployment at ``hostname``.

    Unrestricted environments and local hosts are open. Restricted ones
    need the feature flag, so anonymous users and deployments without
    analytics are denied.
    """
    if is_local_host(hostname):
        return True

    info = get_environment_info(hostname)
    if not info.requires_dev_access:
        return True

    if not user_id:
        return False

    if analytics is None or not analytics.enabled:
        print("[environment] Analytics not configured, denying access")
        return False

    return analytics.is_feature_enabled(DEV_ACCESS_FLAG, user_id)


def get_access_denial_message(info: EnvironmentInfo) -> str:
    if info.is_dev_environment:
        return "Access to the development environment is restricted to authorized developers."
    if info.is_ephemeral_environment:
        return "Access to this preview environment is restricted to authorized developers."
    return "Access to this environment is restricted."
