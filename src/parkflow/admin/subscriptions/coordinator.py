"""
Subscription mutation coordinator.

Runs assign / extend / change-plan / unassign commands against the backend,
applies the optimistic local patch once the backend accepts a command, and
schedules a delayed authoritative refetch to absorb backend replication lag.

Each operation key carries a tagged ``OperationState``. While a key is
pending, further commands on it are rejected as a no-op:

- assign, extend and change-plan share one key per tenant;
- unassign uses a single global key by default (``GuardScope.GLOBAL``), or
  one key per tenant with ``GuardScope.TENANT``.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

import structlog

from parkflow.admin.logging import log_audit_event
from parkflow.admin.settings import GuardScope
from parkflow.admin.subscriptions.catalog import PlanCatalogStore
from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.events import EventEmitter, SubscriptionEvents
from parkflow.admin.subscriptions.exceptions import (
    PlanNotFoundError,
    SubscriptionConsoleError,
    SubscriptionValidationError,
)
from parkflow.admin.subscriptions.forms import AssignDraft, ExtendDraft, ExtendMode
from parkflow.admin.subscriptions.history import HistoryPager
from parkflow.admin.subscriptions.models import (
    IDLE,
    MutationOutcome,
    MutationStatus,
    OperationPhase,
    OperationState,
    SubscriptionStatus,
    TenantSubscriptionRecord,
)
from parkflow.admin.subscriptions.registry import Clock, SubscriptionRegistry, utcnow

logger = structlog.get_logger(__name__)

UNASSIGN_GLOBAL_KEY = "unassign"


class MutationCoordinator:
    """Serializes subscription commands and reconciles the local replica."""

    def __init__(
        self,
        client: SubscriptionBackendClient,
        registry: SubscriptionRegistry,
        catalog: PlanCatalogStore,
        history: HistoryPager | None = None,
        reconcile_delay: float | None = 1.0,
        unassign_scope: GuardScope = GuardScope.GLOBAL,
        events: EventEmitter | None = None,
        clock: Clock = utcnow,
        max_settled_states: int = 256,
    ) -> None:
        """
        Args:
            client: Backend client
            registry: Tenant subscription replica to patch
            catalog: Plan catalog, used to resolve default durations
            history: History pager whose cache is invalidated after mutations
            reconcile_delay: Seconds before the authoritative refetch; None disables it
            unassign_scope: Whether unassignments serialize globally or per tenant
            events: Event emitter shared with the stores
            clock: Source of "now" for optimistic windows
            max_settled_states: Succeeded/failed states kept for ``state()``;
                older ones read back as idle. Pending states are never dropped.
        """
        self.client = client
        self.registry = registry
        self.catalog = catalog
        self.history = history
        self.reconcile_delay = reconcile_delay
        self.unassign_scope = unassign_scope
        self.events = events or registry.events
        self.clock = clock
        self.max_settled_states = max_settled_states

        self._states: dict[str, OperationState] = {}
        self._reconcile_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Operation state
    # ------------------------------------------------------------------

    def _mutation_key(self, tenant_id: str) -> str:
        return f"mutate:{tenant_id}"

    def _unassign_key(self, tenant_id: str) -> str:
        if self.unassign_scope == GuardScope.TENANT:
            return f"unassign:{tenant_id}"
        return UNASSIGN_GLOBAL_KEY

    def state(self, operation: str, tenant_id: str) -> OperationState:
        """Current state of ``operation`` ("assign", "extend", "change" or "unassign")."""
        if operation == "unassign":
            key = self._unassign_key(tenant_id)
        else:
            key = self._mutation_key(tenant_id)
        return self._states.get(key, IDLE)

    @property
    def unassign_pending(self) -> bool:
        return any(
            state.is_pending
            for key, state in self._states.items()
            if key.startswith(UNASSIGN_GLOBAL_KEY)
        )

    def _begin(self, key: str) -> str | None:
        if self._states.get(key, IDLE).is_pending:
            return None
        request_id = uuid.uuid4().hex
        self._set_state(key, OperationState(OperationPhase.PENDING, request_id))
        return request_id

    def _set_state(self, key: str, state: OperationState) -> None:
        # Re-insert so settled keys stay ordered oldest first
        self._states.pop(key, None)
        self._states[key] = state
        if not state.is_pending:
            self._prune_settled()
        self.events.emit(
            SubscriptionEvents.OPERATION_STATE_CHANGED,
            key=key,
            phase=state.phase.value,
            request_id=state.request_id,
        )

    def _prune_settled(self) -> None:
        """Forget the oldest settled states beyond ``max_settled_states``."""
        settled = [key for key, state in self._states.items() if not state.is_pending]
        for key in settled[: max(len(settled) - self.max_settled_states, 0)]:
            del self._states[key]

    def _rejected(self, operation: str, tenant_id: str, key: str) -> MutationOutcome:
        logger.debug(
            "Command ignored while another is pending",
            operation=operation,
            tenant_id=tenant_id,
            pending_request=self._states[key].request_id,
        )
        return MutationOutcome(
            status=MutationStatus.REJECTED,
            operation=operation,
            tenant_id=tenant_id,
            details={"pending_request": self._states[key].request_id},
        )

    async def _guarded(
        self,
        operation: str,
        tenant_id: str,
        key: str,
        call: Callable[[], Awaitable[Any]],
    ) -> tuple[str | None, Any]:
        """Run a backend call under ``key``; returns (request_id, response).

        request_id is None when the key was already pending.
        """
        request_id = self._begin(key)
        if request_id is None:
            return None, None

        try:
            response = await call()
        except asyncio.CancelledError:
            # A cancelled caller must not leave the key pending
            self._set_state(key, OperationState(OperationPhase.FAILED, request_id, "cancelled"))
            logger.info(
                "Subscription command cancelled",
                operation=operation,
                tenant_id=tenant_id,
                request_id=request_id,
            )
            raise
        except Exception as e:
            reason = e.message if isinstance(e, SubscriptionConsoleError) else str(e)
            self._set_state(key, OperationState(OperationPhase.FAILED, request_id, reason))
            logger.warning(
                "Subscription command failed",
                operation=operation,
                tenant_id=tenant_id,
                request_id=request_id,
                error=reason,
            )
            raise

        self._set_state(key, OperationState(OperationPhase.SUCCEEDED, request_id))
        return request_id, response

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def assign_plan(
        self, tenant_id: str, plan_id: str, duration_days: int
    ) -> MutationOutcome:
        """Assign a plan and open a fresh window of ``duration_days``."""
        command = AssignDraft(
            tenant_id=tenant_id, plan_id=plan_id, duration_days=duration_days
        ).validate()
        return await self._open_window(
            "assign",
            command.tenant_id,
            command.duration_days,
            plan_id=command.plan_id,
            call=lambda: self.client.assign_subscription(
                command.tenant_id, command.plan_id, command.duration_days
            ),
        )

    async def extend_plan(self, tenant_id: str, duration_days: int) -> MutationOutcome:
        """
        Extend a tenant's subscription.

        The window is reset to ``[now, now + duration_days]``; the remaining
        days of the previous window are not carried over.
        """
        command = ExtendDraft(tenant_id=tenant_id, duration_days=duration_days).validate()
        return await self._open_window(
            "extend",
            command.tenant_id,
            command.duration_days,
            call=lambda: self.client.extend_subscription(command.tenant_id, command.duration_days),
        )

    async def change_plan(
        self, tenant_id: str, plan_id: str, duration_days: int | None = None
    ) -> MutationOutcome:
        """Move a tenant to another plan; duration defaults to the new plan's."""
        if duration_days is None:
            plan = self.catalog.get(plan_id)
            if plan is None:
                if not plan_id:
                    raise SubscriptionValidationError(
                        "Please select a plan to change to", field="plan_id"
                    )
                raise PlanNotFoundError(f"Plan {plan_id} is not in the catalog", plan_id=plan_id)
            duration_days = plan.duration_days

        command = ExtendDraft(
            tenant_id=tenant_id,
            mode=ExtendMode.CHANGE,
            plan_id=plan_id,
            duration_days=duration_days,
        ).validate()
        plan_id = command.plan_id or plan_id
        return await self._open_window(
            "change",
            command.tenant_id,
            command.duration_days,
            plan_id=plan_id,
            call=lambda: self.client.assign_subscription(
                command.tenant_id, plan_id, command.duration_days
            ),
        )

    async def unassign(self, tenant_id: str) -> MutationOutcome:
        """
        Remove a tenant's plan.

        Rejected as a no-op while another unassignment is pending (globally by
        default). On success the record drops out of the subscribed view at once.
        """
        if not tenant_id:
            raise SubscriptionValidationError("No contractor selected", field="tenant_id")

        key = self._unassign_key(tenant_id)
        request_id, _ = await self._guarded(
            "unassign",
            tenant_id,
            key,
            lambda: self.client.unassign_subscription(tenant_id),
        )
        if request_id is None:
            return self._rejected("unassign", tenant_id, key)

        record = self.registry.patch(tenant_id, plan_id=None)
        self._after_success("unassign", tenant_id, request_id)
        return MutationOutcome(
            status=MutationStatus.APPLIED,
            operation="unassign",
            tenant_id=tenant_id,
            request_id=request_id,
            record=record,
        )

    async def submit(self, draft: AssignDraft | ExtendDraft) -> MutationOutcome:
        """Execute a dialog draft after validating it."""
        if isinstance(draft, AssignDraft):
            command = draft.validate()
            return await self.assign_plan(command.tenant_id, command.plan_id, command.duration_days)

        extend = draft.validate()
        if extend.mode == ExtendMode.CHANGE:
            return await self.change_plan(
                extend.tenant_id, extend.plan_id or "", extend.duration_days
            )
        return await self.extend_plan(extend.tenant_id, extend.duration_days)

    async def _open_window(
        self,
        operation: str,
        tenant_id: str,
        duration_days: int,
        call: Callable[[], Awaitable[TenantSubscriptionRecord | None]],
        plan_id: str | None = None,
    ) -> MutationOutcome:
        key = self._mutation_key(tenant_id)
        request_id, authoritative = await self._guarded(operation, tenant_id, key, call)
        if request_id is None:
            return self._rejected(operation, tenant_id, key)

        if authoritative is not None:
            record: TenantSubscriptionRecord | None = self.registry.put(authoritative)
        else:
            now = self.clock()
            changes: dict[str, Any] = {
                "start_date": now,
                "end_date": now + timedelta(days=duration_days),
                "status": SubscriptionStatus.ACTIVE,
            }
            if plan_id:
                changes["plan_id"] = plan_id
            record = self.registry.patch(tenant_id, **changes)

        self._after_success(
            operation, tenant_id, request_id, plan_id=plan_id, duration_days=duration_days
        )
        return MutationOutcome(
            status=MutationStatus.APPLIED,
            operation=operation,
            tenant_id=tenant_id,
            request_id=request_id,
            record=record,
            details={"duration_days": duration_days, "plan_id": plan_id},
        )

    def _after_success(
        self, operation: str, tenant_id: str, request_id: str, **details: Any
    ) -> None:
        log_audit_event(
            f"subscription.{operation}",
            category="subscription",
            tenant_id=tenant_id,
            resource_type="tenant_subscription",
            resource_id=tenant_id,
            request_id=request_id,
            **details,
        )
        if self.history is not None:
            self.history.invalidate(tenant_id)
        self._schedule_reconcile()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _schedule_reconcile(self) -> None:
        if self.reconcile_delay is None:
            return
        task = asyncio.get_running_loop().create_task(self._reconcile_later(self.reconcile_delay))
        self._reconcile_tasks.add(task)
        task.add_done_callback(self._reconcile_tasks.discard)

    async def _reconcile_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.registry.refresh()
            await self.catalog.refresh()
        except SubscriptionConsoleError as e:
            # The optimistic state stays until the next successful load
            logger.warning("Reconciliation refetch failed", error=e.message)
            return
        self.events.emit(SubscriptionEvents.RECONCILED)

    @property
    def reconciliation_pending(self) -> bool:
        return bool(self._reconcile_tasks)

    async def wait_reconciled(self) -> None:
        """Wait for every scheduled refetch to finish."""
        while self._reconcile_tasks:
            await asyncio.gather(*list(self._reconcile_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel pending refetches."""
        tasks = list(self._reconcile_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._reconcile_tasks.clear()
