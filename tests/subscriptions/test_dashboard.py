"""
Tests for dashboard metric aggregation.
"""

from datetime import timedelta
from decimal import Decimal

from parkflow.admin.subscriptions.dashboard import (
    DashboardPresenter,
    count_by_status,
    summarize_financials,
)
from parkflow.admin.subscriptions.models import StatusCategory, SubscriptionStatus


class TestCountByStatus:
    """Status bucket counts."""

    def test_all_buckets_present(self, now):
        counts = count_by_status([], now)
        assert counts == {category: 0 for category in StatusCategory}

    def test_counts(self, make_record, now):
        records = [
            make_record("a", ends_in_days=None),
            make_record("b", ends_in_days=-1),
            make_record("c", ends_in_days=90, status=SubscriptionStatus.EXPIRED),
            make_record("d", ends_in_days=5),
            make_record("e", ends_in_days=20),
            make_record("f", ends_in_days=120),
        ]

        counts = count_by_status(records, now)

        assert counts[StatusCategory.NO_SUBSCRIPTION] == 1
        assert counts[StatusCategory.EXPIRED] == 2
        assert counts[StatusCategory.EXPIRING_CRITICAL] == 1
        assert counts[StatusCategory.EXPIRING_SOON] == 1
        assert counts[StatusCategory.ACTIVE] == 1


class TestFinancials:
    """Revenue windows based on start dates and current plan prices."""

    def test_windows(self, make_record, plans, now):
        records = [
            make_record("today", plan_id="basic", started_days_ago=0),
            make_record("week", plan_id="pro", started_days_ago=3),
            make_record("month", plan_id="basic", started_days_ago=20),
            make_record("old", plan_id="pro", started_days_ago=200),
            make_record("gone", plan_id="deleted-plan", started_days_ago=0),
        ]

        summary = summarize_financials(records, plans, now)

        assert summary.total_plan_amount == Decimal("701.00")
        assert summary.today_assignments == 2
        assert summary.today_revenue == Decimal("100")
        assert summary.last_7_days_revenue == Decimal("350.50")
        assert summary.last_30_days_revenue == Decimal("450.50")

    def test_today_starts_at_utc_midnight(self, make_record, plans, now):
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        records = [
            make_record("at-midnight", start_date=midnight),
            make_record("before", start_date=midnight - timedelta(seconds=1)),
        ]

        summary = summarize_financials(records, plans, now)

        assert summary.today_assignments == 1

    def test_missing_start_date_only_counts_in_total(self, make_record, plans, now):
        records = [make_record("a", start_date=None)]

        summary = summarize_financials(records, plans, now)

        assert summary.total_plan_amount == Decimal("100")
        assert summary.last_30_days_revenue == Decimal("0")


class TestDashboardPresenter:
    """Full summary."""

    def test_summarize(self, make_record, plans, now):
        records = [make_record("a", ends_in_days=3), make_record("b", ends_in_days=100)]

        summary = DashboardPresenter().summarize(records, plans, now)

        assert summary.subscribed_tenants == 2
        assert summary.status_counts[StatusCategory.EXPIRING_CRITICAL] == 1
        assert summary.status_counts[StatusCategory.ACTIVE] == 1
        assert summary.financials.total_plan_amount == Decimal("200")
        assert summary.generated_at == now
