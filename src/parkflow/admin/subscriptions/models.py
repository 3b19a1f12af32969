"""
Subscription domain models.

Wire models (plans, tenant subscription records, history entries) are pydantic
models parsed from backend payloads. Derived view-models are plain frozen
dataclasses recomputed from those records.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from parkflow.admin.settings import get_settings


class StatusCategory(str, Enum):
    """Time-based status bucket of a tenant subscription."""

    NO_SUBSCRIPTION = "no-subscription"
    EXPIRED = "expired"
    EXPIRING_CRITICAL = "expiring-critical"
    EXPIRING_SOON = "expiring-soon"
    ACTIVE = "active"


class SubscriptionStatus(str, Enum):
    """Status flag stored by the backend."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class HistoryAction(str, Enum):
    """Audit trail action types."""

    ASSIGNED = "assigned"
    EXTENDED = "extended"
    UNASSIGNED = "unassigned"
    CHANGED = "changed"


class SortField(str, Enum):
    """Columns the subscription table can be sorted by."""

    COMPANY_NAME = "company_name"
    START_DATE = "start_date"
    END_DATE = "end_date"
    DAYS_REMAINING = "days_remaining"
    STATUS = "status"


def _as_utc(value: Any) -> Any:
    """Treat naive timestamps as UTC."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============================================================================
# Wire models
# ============================================================================


class Plan(BaseModel):
    """Subscription plan from the catalog."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(description="Plan identifier")
    name: str = Field(description="Plan display name")
    price: Decimal = Field(description="Plan price in the platform currency")
    duration_days: int = Field(description="Default subscription length in days")
    features: Any = Field(default_factory=dict, description="Opaque feature map")
    max_locations: int | None = Field(None, description="Location allowance")
    max_attendants: int | None = Field(None, description="Attendant allowance")

    @model_validator(mode="before")
    @classmethod
    def resolve_duration(cls, data: Any) -> Any:
        """Backend payloads carry the duration as ``days`` or ``duration_days``."""
        if isinstance(data, dict) and not data.get("duration_days"):
            data = dict(data)
            data["duration_days"] = (
                data.get("days") or get_settings().console.default_plan_duration_days
            )
        return data


class TenantSubscriptionRecord(BaseModel):
    """
    A tenant joined with its current subscription.

    Accepts both the backend contractor payload (``user_id``, ``company_name``
    and a nested ``profiles`` object carrying the subscription columns) and a
    flat payload using the field names below.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    tenant_id: str = Field(description="Tenant (contractor user) identifier")
    company_name: str = Field("", description="Company name")
    contact_name: str = Field("", description="Primary contact name")
    email: str = Field("", description="Contact email")
    plan_id: str | None = Field(None, description="Assigned plan, if any")
    start_date: datetime | None = Field(None, description="Subscription window start (UTC)")
    end_date: datetime | None = Field(None, description="Subscription window end (UTC)")
    status: SubscriptionStatus | None = Field(None, description="Backend status flag")

    @model_validator(mode="before")
    @classmethod
    def flatten_contractor_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "tenant_id" in data:
            return data

        profile = data.get("profiles") or {}
        if isinstance(profile, list):
            profile = profile[0] if profile else {}

        def pick(*keys: str) -> Any:
            for source in (profile, data):
                for key in keys:
                    if source.get(key) is not None:
                        return source[key]
            return None

        return {
            "tenant_id": data.get("user_id") or data.get("contractor_id") or data.get("id"),
            "company_name": data.get("company_name") or "",
            "contact_name": pick("user_name", "contact_name") or "",
            "email": pick("email") or "",
            "plan_id": pick("subscription_plan_id", "plan_id"),
            "start_date": pick("subscription_start_date", "start_date"),
            "end_date": pick("subscription_end_date", "end_date"),
            "status": pick("subscription_status", "status"),
        }

    @field_validator("plan_id", "start_date", "end_date", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Unknown or empty flags are treated as absent."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v in SubscriptionStatus._value2member_map_:
                return v
        return None if not isinstance(v, SubscriptionStatus) else v

    @property
    def has_plan(self) -> bool:
        return bool(self.plan_id)


class HistoryEntry(BaseModel):
    """Immutable audit trail entry for a tenant subscription."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(description="Entry identifier")
    action: HistoryAction | str = Field(description="What happened")
    plan_name: str = Field("Unknown Plan", description="Plan name at the time")
    plan_price: Decimal | None = Field(
        None,
        validation_alias=AliasChoices("plan_price", "amount_paid"),
        description="Plan price at the time",
    )
    start_date: datetime | None = Field(
        None, validation_alias=AliasChoices("start_date", "new_start_date")
    )
    end_date: datetime | None = Field(
        None, validation_alias=AliasChoices("end_date", "new_end_date")
    )
    status: str | None = Field(None, description="Status recorded with the entry")
    notes: str | None = Field(None, description="Operator notes")
    created_at: datetime | None = Field(
        None, validation_alias=AliasChoices("created_at", "created_on")
    )

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("start_date", "end_date", "created_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


# ============================================================================
# Derived view-models
# ============================================================================


@dataclass(frozen=True)
class ViewQuery:
    """Search, sort and pagination inputs of the subscription table."""

    search: str = ""
    page: int = 1
    page_size: int = 10
    sort_by: SortField | None = None
    descending: bool = False


@dataclass(frozen=True)
class FilteredPage:
    """One page of the filtered subscription view."""

    items: tuple[TenantSubscriptionRecord, ...]
    page: int
    page_size: int
    page_count: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


@dataclass(frozen=True)
class HistoryPage:
    """One page of a tenant's subscription history."""

    tenant_id: str
    entries: tuple[HistoryEntry, ...]
    page: int
    page_size: int
    total_items: int
    total_pages: int


@dataclass(frozen=True)
class FinancialSummary:
    """Revenue figures derived from currently assigned plan prices."""

    total_plan_amount: Decimal = Decimal("0")
    today_assignments: int = 0
    today_revenue: Decimal = Decimal("0")
    last_7_days_revenue: Decimal = Decimal("0")
    last_30_days_revenue: Decimal = Decimal("0")


@dataclass(frozen=True)
class DashboardSummary:
    """Dashboard metric cards."""

    subscribed_tenants: int
    status_counts: dict[StatusCategory, int]
    financials: FinancialSummary
    generated_at: datetime


class OperationPhase(str, Enum):
    """Lifecycle of a single mutation request."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationState:
    """Tagged state of the latest request for an operation key."""

    phase: OperationPhase = OperationPhase.IDLE
    request_id: str | None = None
    reason: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.phase == OperationPhase.PENDING


IDLE = OperationState()


class MutationStatus(str, Enum):
    """Result of a coordinator command."""

    APPLIED = "applied"
    REJECTED = "rejected"


@dataclass(frozen=True)
class MutationOutcome:
    """What a coordinator command did to the local replica."""

    status: MutationStatus
    operation: str
    tenant_id: str
    request_id: str | None = None
    record: TenantSubscriptionRecord | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def applied(self) -> bool:
        return self.status == MutationStatus.APPLIED
