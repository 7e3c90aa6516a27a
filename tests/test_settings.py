"""
Configuration Validation Tests

PURPOSE:
    Prevent silent failures caused by missing or invalid configuration.
    These tests validate that:
    - Production requires storage and auth credentials
    - Invalid values are reported instead of ignored
    - Development runs with safe defaults

WHAT THIS PROTECTS AGAINST:
    - Production deploys falling back to in-memory storage
    - Unauthenticated production deployments
    - Sitemaps built with a localhost base URL
"""

import importlib
import os
from unittest.mock import patch

import pytest

from tests.test_config import CONFIG, EXPECTED

pytestmark = pytest.mark.config_validation


@pytest.fixture
def reload_config():
    """
    Reload the config module under a patched environment, then restore it.

    Usage: cfg = reload_config({"APP_ENV": "production"})
    """
    import vibechecc.config.config as config_module

    def _reload(env: dict):
        with patch.dict(os.environ, env, clear=True), \
                patch("dotenv.load_dotenv", return_value=False):
            return importlib.reload(config_module)

    yield _reload

    importlib.reload(config_module)


PRODUCTION_ENV = {
    "APP_ENV": "production",
    "SITE_URL": CONFIG["base_url"],
    "AIRTABLE_API_KEY": "key123",
    "AIRTABLE_BASE_ID": "app123",
    "CLERK_JWKS_URL": "https://example.clerk.accounts.dev/.well-known/jwks.json",
}


class TestDefaults:
    """Development defaults."""

    def test_development_defaults_are_valid(self, reload_config):
        """
        GIVEN: An empty environment
        WHEN: Config is loaded
        THEN: It is development mode with no validation errors
        """
        cfg = reload_config({})

        assert cfg.APP_ENV == "development"
        assert cfg.is_development()
        assert not cfg.is_production()
        assert cfg.validate_config() == []

    def test_default_limits(self, reload_config):
        cfg = reload_config({})

        assert cfg.DEFAULT_PAGE_SIZE == EXPECTED["pagination"]["default_limit"]
        assert cfg.MAX_PAGE_SIZE == EXPECTED["pagination"]["max_limit"]
        assert cfg.SITEMAP_MAX_ENTRIES == 50000
        assert cfg.RATE_LIMIT_ENABLED is True

    def test_site_url_trailing_slash_is_stripped(self, reload_config):
        cfg = reload_config({"SITE_URL": "https://vibechecc.io/"})
        assert cfg.SITE_URL == "https://vibechecc.io"

    def test_timeout_default_in_sane_range(self, reload_config):
        cfg = reload_config({})
        low, high = EXPECTED["config"]["default_timeout_range"]
        assert low <= cfg.REQUEST_TIMEOUT <= high

    def test_authorized_parties_are_split(self, reload_config):
        cfg = reload_config({"CLERK_AUTHORIZED_PARTIES": "https://a.io, https://b.io,,"})
        assert cfg.CLERK_AUTHORIZED_PARTIES == ["https://a.io", "https://b.io"]

    def test_rate_limit_can_be_disabled(self, reload_config):
        cfg = reload_config({"RATE_LIMIT_ENABLED": "false"})
        assert cfg.RATE_LIMIT_ENABLED is False


class TestProductionValidation:
    """Production requires real credentials."""

    def test_complete_production_config_is_valid(self, reload_config):
        cfg = reload_config(PRODUCTION_ENV)
        assert cfg.validate_config() == []

    @pytest.mark.parametrize("missing", EXPECTED["config"]["required_production_vars"])
    def test_missing_required_var_is_reported(self, reload_config, missing):
        """
        GIVEN: Production environment without one required variable
        WHEN: validate_config() is called
        THEN: The error names that variable
        """
        env = {k: v for k, v in PRODUCTION_ENV.items() if k != missing}
        cfg = reload_config(env)

        errors = cfg.validate_config()
        assert any(missing in e for e in errors)

    def test_localhost_site_url_rejected_in_production(self, reload_config):
        env = {**PRODUCTION_ENV, "SITE_URL": "http://localhost:3000"}
        cfg = reload_config(env)
        assert "SITE_URL must be a public URL in production" in cfg.validate_config()

    def test_missing_credentials_allowed_in_development(self, reload_config):
        cfg = reload_config({"APP_ENV": "development"})
        errors = cfg.validate_config()
        assert not any("AIRTABLE" in e for e in errors)
        assert not any("CLERK" in e for e in errors)


class TestValueValidation:
    """Invalid values are reported in every environment."""

    def test_site_url_without_scheme(self, reload_config):
        cfg = reload_config({"SITE_URL": "vibechecc.io"})
        assert "SITE_URL must start with http:// or https://" in cfg.validate_config()

    def test_zero_timeout(self, reload_config):
        cfg = reload_config({"REQUEST_TIMEOUT": "0"})
        assert "REQUEST_TIMEOUT must be at least 1 second" in cfg.validate_config()

    def test_max_page_size_below_default(self, reload_config):
        cfg = reload_config({"DEFAULT_PAGE_SIZE": "50", "MAX_PAGE_SIZE": "10"})
        assert "MAX_PAGE_SIZE cannot be smaller than DEFAULT_PAGE_SIZE" in cfg.validate_config()

    @pytest.mark.parametrize("value", ["0", "50001"])
    def test_sitemap_max_entries_out_of_range(self, reload_config, value):
        cfg = reload_config({"SITEMAP_MAX_ENTRIES": value})
        assert "SITEMAP_MAX_ENTRIES must be between 1 and 50000" in cfg.validate_config()


class TestConfigSummary:
    """The printed summary never leaks secrets."""

    def test_secrets_are_masked(self, reload_config, capsys):
        cfg = reload_config({
            **PRODUCTION_ENV,
            "CLERK_WEBHOOK_SECRET": "whsec_supersecret",
            "POSTHOG_API_KEY": "phc_secret",
        })

        cfg.print_config_summary()
        output = capsys.readouterr().out

        assert "key123" not in output
        assert "whsec_supersecret" not in output
        assert "phc_secret" not in output
        assert "AIRTABLE_API_KEY: ***" in output

    def test_unset_values_are_labelled(self, reload_config, capsys):
        cfg = reload_config({})
        cfg.print_config_summary()
        assert "AIRTABLE_API_KEY: (not set)" in capsys.readouterr().out
