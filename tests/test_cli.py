"""
Tests for CLI commands.

Commands run against a real console wired to a mocked backend client.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from parkflow.admin.cli import CLIDependencies, cli
from parkflow.admin.subscriptions.console import SubscriptionConsole
from parkflow.admin.subscriptions.exceptions import BackendRequestError
from parkflow.admin.subscriptions.models import HistoryEntry


@pytest.fixture
def runner():
    """Create CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def deps(mock_client, clock):
    return CLIDependencies(
        console_factory=lambda: SubscriptionConsole.from_settings(
            client=mock_client, clock=clock
        ),
        clock=clock,
    )


@pytest.fixture
def invoke(runner, deps):
    def _invoke(*args):
        with patch("parkflow.admin.cli._get_cli_dependencies", return_value=deps):
            return runner.invoke(cli, list(args))

    return _invoke


@pytest.fixture
def tenants(mock_client, make_record):
    mock_client.list_tenant_subscriptions.return_value = [
        make_record("t1", company_name="Harbor Lots", ends_in_days=5),
        make_record("t2", company_name="City Garage", plan_id="pro", ends_in_days=100),
        make_record("t3", company_name="Unassigned Co", plan_id=None, ends_in_days=None),
    ]


class TestCLIGroup:
    """Command registration."""

    def test_commands_exist(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in [
            "plans",
            "subscriptions",
            "dashboard",
            "history",
            "assign",
            "extend",
            "change-plan",
            "unassign",
        ]:
            assert command in result.output


class TestQueries:
    """Read-only commands."""

    def test_plans(self, invoke):
        result = invoke("plans")
        assert result.exit_code == 0
        assert "Basic" in result.output
        assert "90 days" in result.output

    def test_unreadable_catalog_exits_cleanly(self, invoke, mock_client):
        mock_client.list_plans.side_effect = BackendRequestError(
            "Failed to parse response: invalid Plan data", error="Parse Error"
        )

        result = invoke("plans")

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "invalid Plan data" in result.output

    def test_subscriptions_lists_assigned_tenants(self, invoke, tenants):
        result = invoke("subscriptions", "--sort-by", "end_date")

        assert result.exit_code == 0
        assert result.output.index("Harbor Lots") < result.output.index("City Garage")
        assert "Unassigned Co" not in result.output
        assert "expiring-critical" in result.output
        assert "Page 1 of 1 (2 subscriptions)" in result.output

    def test_subscriptions_out_of_range_page_is_clamped(self, invoke, tenants):
        result = invoke("subscriptions", "--page", "9", "--page-size", "1")
        assert result.exit_code == 0
        assert "Page 2 of 2" in result.output

    def test_dashboard(self, invoke, tenants):
        result = invoke("dashboard")

        assert result.exit_code == 0
        assert "Subscribed tenants: 2" in result.output
        assert "expiring-critical: 1" in result.output
        assert "Total plan amount: 350.50" in result.output

    def test_history(self, invoke, mock_client):
        mock_client.get_tenant_subscription_history.return_value = [
            HistoryEntry(id=str(i), action="extended", plan_name="Basic") for i in range(7)
        ]

        result = invoke("history", "t1", "--page", "2")

        assert result.exit_code == 0
        assert "Page 2 of 2 (7 entries)" in result.output
        mock_client.list_tenant_subscriptions.assert_not_awaited()


class TestMutations:
    """Commands that change subscriptions."""

    def test_assign_uses_plan_duration(self, invoke, tenants, mock_client):
        result = invoke("assign", "t3", "pro")

        assert result.exit_code == 0
        assert "Subscription assigned to t3." in result.output
        mock_client.assign_subscription.assert_awaited_once_with("t3", "pro", 90)

    def test_extend(self, invoke, tenants, mock_client):
        result = invoke("extend", "t1", "30")

        assert result.exit_code == 0
        mock_client.extend_subscription.assert_awaited_once_with("t1", 30)

    def test_change_plan(self, invoke, tenants, mock_client):
        result = invoke("change-plan", "t1", "pro", "--days", "60")

        assert result.exit_code == 0
        mock_client.assign_subscription.assert_awaited_once_with("t1", "pro", 60)

    def test_unassign(self, invoke, tenants, mock_client):
        result = invoke("unassign", "t2")

        assert result.exit_code == 0
        assert "Subscription removed from t2." in result.output
        mock_client.unassign_subscription.assert_awaited_once_with("t2")

    def test_unassign_unknown_tenant(self, invoke, tenants, mock_client):
        result = invoke("unassign", "nobody")

        assert result.exit_code == 1
        assert "Contractor nobody not found" in result.output
        mock_client.unassign_subscription.assert_not_awaited()

    def test_backend_error_exits_with_message(self, invoke, tenants, mock_client):
        mock_client.extend_subscription.side_effect = BackendRequestError(
            "Contractor has no active subscription", 400
        )

        result = invoke("extend", "t1", "30")

        assert result.exit_code == 1
        assert "Contractor has no active subscription" in result.output

    def test_validation_error_exits(self, invoke, tenants, mock_client):
        result = invoke("extend", "t1", "0")

        assert result.exit_code == 1
        assert "positive number of days" in result.output
        mock_client.extend_subscription.assert_not_awaited()
