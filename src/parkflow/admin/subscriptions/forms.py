"""
Transient form drafts for the console dialogs.

Drafts hold whatever the operator has typed so far. ``validate()`` turns a
draft into a clean command or raises ``SubscriptionValidationError``; nothing
reaches the backend until it passes.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from parkflow.admin.subscriptions.exceptions import SubscriptionValidationError
from parkflow.admin.subscriptions.models import Plan, TenantSubscriptionRecord

DEFAULT_EXTENSION_DAYS = 30


def _positive_days(value: Any, field_name: str) -> int:
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise SubscriptionValidationError(
            "Duration must be a whole number of days", field=field_name
        ) from None
    if days != value and not isinstance(value, str):
        raise SubscriptionValidationError(
            "Duration must be a whole number of days", field=field_name
        )
    if days <= 0:
        raise SubscriptionValidationError(
            "Duration must be a positive number of days", field=field_name
        )
    return days


def _json_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass
class PlanDraft:
    """Create/edit plan dialog state."""

    name: str = ""
    price: Decimal | float | str | None = None
    duration_days: int | str | None = DEFAULT_EXTENSION_DAYS
    features: Any = field(default_factory=dict)
    plan_id: str | None = None

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanDraft":
        return cls(
            name=plan.name,
            price=plan.price,
            duration_days=plan.duration_days,
            features=plan.features,
            plan_id=plan.id,
        )

    @property
    def is_edit(self) -> bool:
        return self.plan_id is not None

    def validate(self) -> dict[str, Any]:
        """Return the backend payload for this draft."""
        name = (self.name or "").strip()
        if not name:
            raise SubscriptionValidationError("Plan name is required", field="name")

        if self.price is None or (isinstance(self.price, str) and not self.price.strip()):
            raise SubscriptionValidationError("Plan price is required", field="price")
        try:
            price = Decimal(str(self.price).strip())
        except InvalidOperation:
            raise SubscriptionValidationError(
                "Plan price must be a number", field="price"
            ) from None
        if not price.is_finite() or price < 0:
            raise SubscriptionValidationError("Plan price cannot be negative", field="price")

        if self.duration_days is None or self.duration_days == "":
            raise SubscriptionValidationError("Plan duration is required", field="duration_days")
        days = _positive_days(self.duration_days, "duration_days")

        return {
            "name": name,
            "price": _json_number(price),
            "days": days,
            "duration_days": days,
            "features": self.features if self.features is not None else {},
        }


@dataclass(frozen=True)
class AssignCommand:
    tenant_id: str
    plan_id: str
    duration_days: int


@dataclass
class AssignDraft:
    """Assign-subscription dialog state."""

    tenant_id: str | None = None
    plan_id: str | None = None
    duration_days: int | str | None = DEFAULT_EXTENSION_DAYS

    def select_plan(self, plan: Plan) -> "AssignDraft":
        """Pick a plan; the duration follows the plan until edited."""
        return replace(self, plan_id=plan.id, duration_days=plan.duration_days)

    def validate(self) -> AssignCommand:
        if not self.tenant_id or not self.plan_id:
            raise SubscriptionValidationError(
                "Please select contractor and plan", field="tenant_id"
            )
        return AssignCommand(
            tenant_id=self.tenant_id,
            plan_id=self.plan_id,
            duration_days=_positive_days(self.duration_days, "duration_days"),
        )


class ExtendMode(str, Enum):
    """Extend dialog mode."""

    EXTEND = "extend"
    CHANGE = "change"


@dataclass(frozen=True)
class ExtendCommand:
    tenant_id: str
    mode: ExtendMode
    duration_days: int
    plan_id: str | None = None


@dataclass
class ExtendDraft:
    """Extend-or-change-plan dialog state."""

    tenant_id: str | None = None
    mode: ExtendMode = ExtendMode.EXTEND
    duration_days: int | str | None = DEFAULT_EXTENSION_DAYS
    plan_id: str | None = None

    @classmethod
    def for_record(cls, record: TenantSubscriptionRecord) -> "ExtendDraft":
        """Open the dialog for a tenant, defaulting to a 30-day extension."""
        return cls(tenant_id=record.tenant_id, plan_id=record.plan_id)

    def select_plan(self, plan: Plan) -> "ExtendDraft":
        return replace(
            self, mode=ExtendMode.CHANGE, plan_id=plan.id, duration_days=plan.duration_days
        )

    def validate(self) -> ExtendCommand:
        if not self.tenant_id:
            raise SubscriptionValidationError(
                "No contractor selected for extension", field="tenant_id"
            )
        if self.mode == ExtendMode.CHANGE and not self.plan_id:
            raise SubscriptionValidationError("Please select a plan to change to", field="plan_id")
        return ExtendCommand(
            tenant_id=self.tenant_id,
            mode=self.mode,
            duration_days=_positive_days(self.duration_days, "duration_days"),
            plan_id=self.plan_id if self.mode == ExtendMode.CHANGE else None,
        )
