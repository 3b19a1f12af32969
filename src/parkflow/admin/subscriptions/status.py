"""
Subscription status classification.

Pure functions of (end date, status flag, now). The day count is the exact
remaining time divided by a day and rounded up, so a window ending one
millisecond (or less) from now still counts as one day remaining.
"""

from datetime import datetime, timedelta
from enum import Enum

from parkflow.admin.subscriptions.models import (
    StatusCategory,
    SubscriptionStatus,
    TenantSubscriptionRecord,
)

US_PER_DAY = 86_400_000_000
CRITICAL_THRESHOLD_DAYS = 7
RENEWAL_THRESHOLD_DAYS = 30


class Audience(str, Enum):
    """Who an expiry message is written for."""

    CONTRACTOR = "contractor"
    ATTENDANT = "attendant"


def _flag(status: SubscriptionStatus | str | None) -> str | None:
    if isinstance(status, SubscriptionStatus):
        return status.value
    return status


def days_remaining(end_date: datetime | None, now: datetime) -> int | None:
    """Whole days left in the window, rounded up. None without an end date."""
    if end_date is None:
        return None
    # Exact integer microseconds; any positive remainder rounds up to a day
    delta_us = (end_date - now) // timedelta(microseconds=1)
    return -(-delta_us // US_PER_DAY)


def classify(
    end_date: datetime | None,
    status: SubscriptionStatus | str | None,
    now: datetime,
) -> StatusCategory:
    """
    Derive the status bucket of a subscription.

    Precedence: missing end date, then the expired flag or an elapsed window,
    then the 7-day and 30-day thresholds.
    """
    days = days_remaining(end_date, now)
    if days is None:
        return StatusCategory.NO_SUBSCRIPTION
    if _flag(status) == SubscriptionStatus.EXPIRED.value or days <= 0:
        return StatusCategory.EXPIRED
    if days <= CRITICAL_THRESHOLD_DAYS:
        return StatusCategory.EXPIRING_CRITICAL
    if days <= RENEWAL_THRESHOLD_DAYS:
        return StatusCategory.EXPIRING_SOON
    return StatusCategory.ACTIVE


def classify_record(record: TenantSubscriptionRecord, now: datetime) -> StatusCategory:
    return classify(record.end_date, record.status, now)


def describe_days_remaining(end_date: datetime | None, now: datetime) -> str:
    days = days_remaining(end_date, now)
    if days is None:
        return "N/A"
    return f"{days} days" if days > 0 else "Expired"


def needs_renewal(end_date: datetime | None, now: datetime) -> bool:
    """True when the window is expiring within 30 days or already over."""
    days = days_remaining(end_date, now)
    return days is not None and days <= RENEWAL_THRESHOLD_DAYS


def expiry_message(
    end_date: datetime | None,
    status: SubscriptionStatus | str | None,
    now: datetime,
    audience: Audience = Audience.CONTRACTOR,
) -> str:
    """
    Banner text warning a tenant (or its attendants) about the subscription.

    Returns an empty string when there is nothing to warn about.
    """
    flag = _flag(status)
    days = days_remaining(end_date, now)

    if audience == Audience.ATTENDANT:
        if flag in (SubscriptionStatus.EXPIRED.value, SubscriptionStatus.SUSPENDED.value):
            return (
                "Your contractor's subscription is not active. "
                "Please contact your contractor to recharge."
            )
        if days is None or days <= 0:
            return (
                "Your contractor's subscription has expired. "
                "Please contact your contractor to recharge."
            )
        if days <= CRITICAL_THRESHOLD_DAYS:
            return (
                f"Your contractor's subscription will expire in {days} days. "
                "Please contact your contractor to recharge."
            )
        return ""

    if days is None:
        return (
            "No subscription found. "
            "Please contact administrator to assign a subscription plan."
        )
    if flag == SubscriptionStatus.SUSPENDED.value:
        return "Your subscription has been suspended. Please contact administrator for assistance."
    if flag == SubscriptionStatus.EXPIRED.value or days <= 0:
        return (
            f"Your subscription has expired on {end_date:%d/%m/%Y}. "
            "Please recharge to continue using the service."
        )
    if days <= CRITICAL_THRESHOLD_DAYS:
        return (
            f"Your subscription will expire in {days} days. "
            "Please recharge to avoid service interruption."
        )
    return ""
