"""
Configuration module.

Handles environment variables, API keys, and application settings.
"""

from vibechecc.config.config import (
    APP_ENV,
    DEBUG,
    SITE_URL,
    SITE_NAME,
    SITE_TWITTER,
    AIRTABLE_API_KEY,
    AIRTABLE_BASE_ID,
    REQUEST_TIMEOUT,
    CLERK_JWKS_URL,
    CLERK_ISSUER,
    CLERK_AUTHORIZED_PARTIES,
    CLERK_WEBHOOK_SECRET,
    POSTHOG_API_KEY,
    POSTHOG_HOST,
    RATE_LIMIT_ENABLED,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SITEMAP_MAX_ENTRIES,
    is_production,
    is_development,
    validate_config,
    print_config_summary,
)

__all__ = [
    "APP_ENV",
    "DEBUG",
    "SITE_URL",
    "SITE_NAME",
    "SITE_TWITTER",
    "AIRTABLE_API_KEY",
    "AIRTABLE_BASE_ID",
    "REQUEST_TIMEOUT",
    "CLERK_JWKS_URL",
    "CLERK_ISSUER",
    "CLERK_AUTHORIZED_PARTIES",
    "CLERK_WEBHOOK_SECRET",
    "POSTHOG_API_KEY",
    "POSTHOG_HOST",
    "RATE_LIMIT_ENABLED",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SITEMAP_MAX_ENTRIES",
    "is_production",
    "is_development",
    "validate_config",
    "print_config_summary",
]
