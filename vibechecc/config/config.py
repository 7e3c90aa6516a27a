"""
Configuration module for vibechecc.

Settings for storage (Airtable), identity (Clerk), analytics (PostHog),
the public site and the sitemap exporter. Values come from the process
environment or a .env file at the repository root; every key has a
development default so the API runs locally with no setup.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# .env lives next to pyproject.toml
_project_root = Path(__file__).parent.parent.parent
_env_path = _project_root / ".env"
load_dotenv(_env_path)


# =============================================================================
# Application Environment
# =============================================================================

# "development", "staging" or "production"
APP_ENV: str = os.getenv("APP_ENV", "development")

# Chatty [component] logging and Flask debug mode
DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

# Public site URL used for sitemaps, canonical URLs and Open Graph tags
SITE_URL: str = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")

# Site name used in page titles and social cards
SITE_NAME: str = os.getenv("SITE_NAME", "vibechecc")

# Twitter handle for social cards
SITE_TWITTER: str = os.getenv("SITE_TWITTER", "@vibechecc")


# =============================================================================
# Airtable Configuration (document storage)
# =============================================================================

# Personal access token. Empty selects in-memory storage (development only)
AIRTABLE_API_KEY: str = os.getenv("AIRTABLE_API_KEY", "")

# Airtable base ID holding one table per entity (users, vibes, ratings, ...)
AIRTABLE_BASE_ID: str = os.getenv("AIRTABLE_BASE_ID", "")

# HTTP request timeout in seconds for all outbound calls
REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))


# =============================================================================
# Clerk Configuration (authentication)
# =============================================================================

# JWKS endpoint used to verify session tokens
# e.g. https://<your-instance>.clerk.accounts.dev/.well-known/jwks.json
CLERK_JWKS_URL: str = os.getenv("CLERK_JWKS_URL", "")

# Expected "iss" claim of session tokens (optional)
CLERK_ISSUER: str = os.getenv("CLERK_ISSUER", "")

# Comma-separated list of accepted "azp" origins (optional)
CLERK_AUTHORIZED_PARTIES: list[str] = [
    p.strip() for p in os.getenv("CLERK_AUTHORIZED_PARTIES", "").split(",") if p.strip()
]

# Signing secret for Clerk webhooks (starts with "whsec_")
CLERK_WEBHOOK_SECRET: str = os.getenv("CLERK_WEBHOOK_SECRET", "")


# =============================================================================
# PostHog Configuration (analytics + feature flags)
# =============================================================================

# Project API key; analytics is a no-op when empty
POSTHOG_API_KEY: str = os.getenv("POSTHOG_API_KEY", "")

# Ingestion host
POSTHOG_HOST: str = os.getenv("POSTHOG_HOST", "https://us.i.posthog.com").rstrip("/")


# =============================================================================
# Application Limits
# =============================================================================

# Enable per-user sliding window rate limits on create/rate mutations
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Default page size for paginated queries
DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))

# Hard cap for any page size requested by a client
MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

# Maximum URLs per sitemap file (Google's limit is 50,000)
SITEMAP_MAX_ENTRIES: int = int(os.getenv("SITEMAP_MAX_ENTRIES", "50000"))


# =============================================================================
# Helper Functions
# =============================================================================

def is_production() -> bool:
    """Check if running in production environment."""
    return APP_ENV == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return APP_ENV == "development"


def validate_config() -> list[str]:
    """
    Validate that required configuration is present for production.

    Returns:
        List of missing or invalid configuration keys (empty if all valid).
    """
    errors = []

    if is_production():
        if not AIRTABLE_API_KEY:
            errors.append("AIRTABLE_API_KEY is required in production")
        if not AIRTABLE_BASE_ID:
            errors.append("AIRTABLE_BASE_ID is required in production")
        if not CLERK_JWKS_URL:
            errors.append("CLERK_JWKS_URL is required in production")
        if SITE_URL.startswith("http://localhost"):
            errors.append("SITE_URL must be a public URL in production")

    if not (SITE_URL.startswith("http://") or SITE_URL.startswith("https://")):
        errors.append("SITE_URL must start with http:// or https://")

    if REQUEST_TIMEOUT < 1:
        errors.append("REQUEST_TIMEOUT must be at least 1 second")

    if DEFAULT_PAGE_SIZE < 1:
        errors.append("DEFAULT_PAGE_SIZE must be at least 1")

    if MAX_PAGE_SIZE < DEFAULT_PAGE_SIZE:
        errors.append("MAX_PAGE_SIZE cannot be smaller than DEFAULT_PAGE_SIZE")

    if not (1 <= SITEMAP_MAX_ENTRIES <= 50000):
        errors.append("SITEMAP_MAX_ENTRIES must be between 1 and 50000")

    return errors


def print_config_summary() -> None:
    """Print a summary of current configuration (safe for logs, no secrets)."""
    print(f"  APP_ENV: {APP_ENV}")
    print(f"  DEBUG: {DEBUG}")
    print(f"  SITE_URL: {SITE_URL}")
    print(f"  AIRTABLE_API_KEY: {'***' if AIRTABLE_API_KEY else '(not set)'}")
    print(f"  AIRTABLE_BASE_ID: {'***' if AIRTABLE_BASE_ID else '(not set)'}")
    print(f"  CLERK_JWKS_URL: {CLERK_JWKS_URL or '(not set)'}")
    print(f"  CLERK_WEBHOOK_SECRET: {'***' if CLERK_WEBHOOK_SECRET else '(not set)'}")
    print(f"  POSTHOG_API_KEY: {'***' if POSTHOG_API_KEY else '(not set)'}")
    print(f"  RATE_LIMIT_ENABLED: {RATE_LIMIT_ENABLED}")
    print(f"  REQUEST_TIMEOUT: {REQUEST_TIMEOUT}s")
