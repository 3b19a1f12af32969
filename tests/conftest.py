"""
Global pytest configuration and fixtures for Parkflow Admin tests.
"""

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest

os.environ.setdefault("PARKFLOW_ENVIRONMENT", "test")
os.environ.setdefault("PARKFLOW_OBSERVABILITY__LOG_FORMAT", "console")

from parkflow.admin.settings import reset_settings  # noqa: E402
from parkflow.admin.subscriptions.client import SubscriptionBackendClient  # noqa: E402
from parkflow.admin.subscriptions.models import (  # noqa: E402
    Plan,
    SubscriptionStatus,
    TenantSubscriptionRecord,
)

FIXED_NOW = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_settings():
    """Reset the settings singleton around each test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture
def make_record(now: datetime) -> Callable[..., TenantSubscriptionRecord]:
    """Factory for tenant subscription records relative to ``now``."""

    def _make(
        tenant_id: str,
        plan_id: str | None = "basic",
        ends_in_days: float | None = 60,
        started_days_ago: float = 30,
        status: SubscriptionStatus | None = SubscriptionStatus.ACTIVE,
        **fields: Any,
    ) -> TenantSubscriptionRecord:
        defaults: dict[str, Any] = {
            "tenant_id": tenant_id,
            "company_name": f"Company {tenant_id}",
            "contact_name": f"Contact {tenant_id}",
            "email": f"{tenant_id}@example.com",
            "plan_id": plan_id,
            "start_date": now - timedelta(days=started_days_ago),
            "end_date": now + timedelta(days=ends_in_days) if ends_in_days is not None else None,
            "status": status,
        }
        defaults.update(fields)
        return TenantSubscriptionRecord(**defaults)

    return _make


@pytest.fixture
def plans() -> list[Plan]:
    return [
        Plan(id="basic", name="Basic", price=Decimal("100"), duration_days=30),
        Plan(id="pro", name="Pro", price=Decimal("250.50"), duration_days=90),
    ]


@pytest.fixture
def mock_client(plans: list[Plan]) -> AsyncMock:
    """Backend client double; every endpoint is an AsyncMock."""
    client = AsyncMock(spec=SubscriptionBackendClient)
    client.list_plans.return_value = plans
    client.list_tenant_subscriptions.return_value = []
    client.create_plan.return_value = None
    client.update_plan.return_value = None
    client.delete_plan.return_value = None
    client.assign_subscription.return_value = None
    client.extend_subscription.return_value = None
    client.unassign_subscription.return_value = None
    client.get_tenant_subscription_history.return_value = []
    return client
