"""
Dashboard metrics.

Pure aggregation over the filtered (unpaginated) subscription set and the
plan catalog. Revenue figures use current plan prices: a plan missing from
the catalog contributes nothing.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from parkflow.admin.subscriptions.models import (
    DashboardSummary,
    FinancialSummary,
    Plan,
    StatusCategory,
    TenantSubscriptionRecord,
)
from parkflow.admin.subscriptions.status import classify_record

ZERO = Decimal("0")


def count_by_status(
    records: Iterable[TenantSubscriptionRecord], now: datetime
) -> dict[StatusCategory, int]:
    """Count records per status bucket; every bucket is present."""
    counts = dict.fromkeys(StatusCategory, 0)
    for record in records:
        counts[classify_record(record, now)] += 1
    return counts


def summarize_financials(
    records: Iterable[TenantSubscriptionRecord],
    plans: Iterable[Plan],
    now: datetime,
) -> FinancialSummary:
    prices = {plan.id: plan.price for plan in plans}
    midnight = now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    total = today = week = month = ZERO
    today_count = 0
    for record in records:
        price = prices.get(record.plan_id or "", ZERO)
        total += price

        start = record.start_date
        if start is None:
            continue
        if start >= midnight:
            today_count += 1
            today += price
        if start >= week_ago:
            week += price
        if start >= month_ago:
            month += price

    return FinancialSummary(
        total_plan_amount=total,
        today_assignments=today_count,
        today_revenue=today,
        last_7_days_revenue=week,
        last_30_days_revenue=month,
    )


class DashboardPresenter:
    """Builds the dashboard metric cards."""

    def summarize(
        self,
        records: Iterable[TenantSubscriptionRecord],
        plans: Iterable[Plan],
        now: datetime,
    ) -> DashboardSummary:
        records = list(records)
        return DashboardSummary(
            subscribed_tenants=len(records),
            status_counts=count_by_status(records, now),
            financials=summarize_financials(records, plans, now),
            generated_at=now,
        )
