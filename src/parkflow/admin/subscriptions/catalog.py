"""
Plan catalog store.

Keeps the list of subscription plans. Every mutation is followed by a full
catalog refetch; the local list is never patched incrementally.
"""

import itertools
from collections.abc import Iterable

import structlog

from parkflow.admin.logging import log_audit_event
from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.events import EventEmitter, SubscriptionEvents
from parkflow.admin.subscriptions.exceptions import SubscriptionValidationError
from parkflow.admin.subscriptions.forms import PlanDraft
from parkflow.admin.subscriptions.models import Plan, TenantSubscriptionRecord

logger = structlog.get_logger(__name__)


class PlanCatalogStore:
    """Subscription plan catalog backed by the platform API."""

    def __init__(
        self,
        client: SubscriptionBackendClient,
        events: EventEmitter | None = None,
    ) -> None:
        self.client = client
        self.events = events or EventEmitter()
        self._plans: list[Plan] = []
        self._loaded = False
        self._tickets = itertools.count(1)
        self._applied_ticket = 0

    @property
    def plans(self) -> list[Plan]:
        return list(self._plans)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self, plan_id: str | None) -> Plan | None:
        if not plan_id:
            return None
        for plan in self._plans:
            if plan.id == plan_id:
                return plan
        return None

    def price_index(self) -> dict[str, Plan]:
        return {plan.id: plan for plan in self._plans}

    async def refresh(self) -> list[Plan]:
        """
        Replace the local catalog with the backend's.

        A response to an older request than the last one applied is dropped,
        so overlapping refetches cannot restore an outdated list.
        """
        ticket = next(self._tickets)
        plans = await self.client.list_plans()
        if ticket < self._applied_ticket:
            logger.info(
                "Dropping stale plan catalog",
                ticket=ticket,
                applied_ticket=self._applied_ticket,
            )
            return self.plans

        self._applied_ticket = ticket
        self._plans = list(plans)
        self._loaded = True
        logger.debug("Plan catalog loaded", count=len(self._plans))
        self.events.emit(SubscriptionEvents.PLANS_LOADED, count=len(self._plans))
        return self.plans

    async def create(self, draft: PlanDraft) -> list[Plan]:
        payload = draft.validate()
        created = await self.client.create_plan(payload)

        log_audit_event(
            "plan.created",
            category="plan",
            resource_type="subscription_plan",
            resource_id=created.id if created else None,
            plan_name=payload["name"],
        )
        self.events.emit(SubscriptionEvents.PLAN_CREATED, name=payload["name"])
        return await self.refresh()

    async def update(self, plan_id: str, draft: PlanDraft) -> list[Plan]:
        if not plan_id:
            raise SubscriptionValidationError("No plan selected", field="plan_id")
        payload = draft.validate()
        await self.client.update_plan(plan_id, payload)

        log_audit_event(
            "plan.updated",
            category="plan",
            resource_type="subscription_plan",
            resource_id=plan_id,
            plan_name=payload["name"],
        )
        self.events.emit(SubscriptionEvents.PLAN_UPDATED, plan_id=plan_id)
        return await self.refresh()

    async def save(self, draft: PlanDraft) -> list[Plan]:
        """Create or update depending on whether the draft edits an existing plan."""
        if draft.is_edit:
            return await self.update(draft.plan_id or "", draft)
        return await self.create(draft)

    async def delete(self, plan_id: str) -> list[Plan]:
        """
        Delete a plan.

        There is no dependency check: tenants assigned to the plan keep a
        dangling ``plan_id``. Use ``tenants_referencing`` to warn first.
        """
        if not plan_id:
            raise SubscriptionValidationError("No plan selected", field="plan_id")
        await self.client.delete_plan(plan_id)

        log_audit_event(
            "plan.deleted",
            category="plan",
            resource_type="subscription_plan",
            resource_id=plan_id,
        )
        self.events.emit(SubscriptionEvents.PLAN_DELETED, plan_id=plan_id)
        return await self.refresh()

    @staticmethod
    def tenants_referencing(
        plan_id: str, records: Iterable[TenantSubscriptionRecord]
    ) -> list[TenantSubscriptionRecord]:
        return [record for record in records if record.plan_id == plan_id]
