"""
Store change events.

Domain stores emit these so view state (dialogs, tables, metric cards) can
recompute without polling. Listeners run synchronously in emission order.
"""

from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[[str, dict[str, Any]], None]


# ============================================================================
# Event Types
# ============================================================================


class SubscriptionEvents:
    """Subscription console event type constants."""

    # Catalog events
    PLANS_LOADED = "plans.loaded"
    PLAN_CREATED = "plan.created"
    PLAN_UPDATED = "plan.updated"
    PLAN_DELETED = "plan.deleted"

    # Registry events
    SUBSCRIPTIONS_LOADED = "subscriptions.loaded"
    SUBSCRIPTION_PATCHED = "subscription.patched"
    VIEW_CHANGED = "view.changed"
    STALE_LOAD_DROPPED = "subscriptions.stale_load_dropped"

    # Coordinator events
    OPERATION_STATE_CHANGED = "operation.state_changed"
    RECONCILED = "subscriptions.reconciled"


class EventEmitter:
    """Minimal synchronous publish/subscribe hub."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: str, **payload: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event_type, payload)
            except Exception:
                # Listener errors are logged, not propagated
                logger.exception("Event listener failed", event_type=event_type)
