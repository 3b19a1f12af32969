"""
Tests for settings loading and logging helpers.
"""

from unittest.mock import patch

import pytest
import structlog

from parkflow.admin.logging import (
    AUDIT_LOGGER_NAME,
    configure_logging,
    get_audit_logger,
    log_audit_event,
)
from parkflow.admin.settings import (
    Environment,
    GuardScope,
    Settings,
    get_settings,
    reset_settings,
)


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PARKFLOW_ENVIRONMENT", raising=False)
        settings = Settings()

        assert settings.console.reconcile_delay_seconds == 1.0
        assert settings.console.unassign_guard_scope == GuardScope.GLOBAL
        assert settings.console.default_page_size == 10
        assert settings.console.history_page_size == 5

    def test_nested_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PARKFLOW_API__BASE_URL", "https://backend.example/apitest/")
        monkeypatch.setenv("PARKFLOW_CONSOLE__UNASSIGN_GUARD_SCOPE", "tenant")
        monkeypatch.setenv("PARKFLOW_CONSOLE__RECONCILE_DELAY_SECONDS", "2.5")

        settings = Settings()

        assert settings.api.base_url == "https://backend.example/apitest"
        assert settings.console.unassign_guard_scope == GuardScope.TENANT
        assert settings.console.reconcile_delay_seconds == 2.5

    def test_environment_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("PARKFLOW_ENVIRONMENT", "PRODUCTION")
        assert Settings().is_production

    def test_singleton_reset(self):
        first = get_settings()
        assert get_settings() is first
        assert first.environment == Environment.TEST

        reset_settings()
        assert get_settings() is not first


class TestLogging:
    """Structured logging helpers."""

    def test_configure_logging_from_explicit_settings(self, monkeypatch):
        monkeypatch.setenv("PARKFLOW_OBSERVABILITY__LOG_FORMAT", "json")
        configure_logging(Settings())
        structlog.get_logger("parkflow.test").info("Configured", tenant_id="t1")

        monkeypatch.setenv("PARKFLOW_OBSERVABILITY__LOG_FORMAT", "console")
        configure_logging(Settings())

    def test_audit_logger_name(self):
        with patch("parkflow.admin.logging.structlog.get_logger") as mock_get:
            get_audit_logger()
        mock_get.assert_called_once_with(AUDIT_LOGGER_NAME)

    @pytest.mark.parametrize(
        ("action", "category", "resource_type"),
        [
            ("subscription.extend", "subscription", "tenant_subscription"),
            ("plan.deleted", "plan", "subscription_plan"),
        ],
    )
    def test_audit_event_carries_caller_category(self, action, category, resource_type):
        with patch("parkflow.admin.logging.get_audit_logger") as mock_get:
            log_audit_event(
                action,
                category=category,
                resource_type=resource_type,
                resource_id="x1",
                duration_days=30,
            )

        mock_get.return_value.info.assert_called_once_with(
            action,
            audit_category=category,
            audit_resource_type=resource_type,
            audit_resource_id="x1",
            audit_tenant_id=None,
            duration_days=30,
        )

    @pytest.mark.parametrize("level", ["debug", "info", "warning"])
    def test_module_loggers_accept_key_values(self, level):
        logger = structlog.get_logger("parkflow.test")
        getattr(logger, level)("Event happened", tenant_id="t1")


class TestPackage:
    """Top-level helpers."""

    def test_version(self):
        from parkflow.admin import __version__, get_version

        assert get_version() == __version__

    def test_create_subscription_console_uses_overrides(self):
        from parkflow.admin import create_subscription_console

        console = create_subscription_console(base_url="https://backend.example/apitest/")

        assert console.client.base_url == "https://backend.example/apitest"
        assert console.registry.query.page_size == 10
        assert console.history.page_size == 5
