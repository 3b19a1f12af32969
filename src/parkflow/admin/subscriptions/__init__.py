"""
Subscription lifecycle engine.

Plan catalog, tenant subscription registry, mutation coordinator, history
pager and dashboard metrics for the operator console.
"""

from parkflow.admin.subscriptions.catalog import PlanCatalogStore
from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.console import SubscriptionConsole
from parkflow.admin.subscriptions.coordinator import MutationCoordinator
from parkflow.admin.subscriptions.dashboard import DashboardPresenter
from parkflow.admin.subscriptions.events import EventEmitter, SubscriptionEvents
from parkflow.admin.subscriptions.exceptions import (
    BackendAuthenticationError,
    BackendNotFoundError,
    BackendRequestError,
    PlanNotFoundError,
    SubscriptionConsoleError,
    SubscriptionValidationError,
    TenantNotFoundError,
)
from parkflow.admin.subscriptions.forms import AssignDraft, ExtendDraft, ExtendMode, PlanDraft
from parkflow.admin.subscriptions.history import HistoryPager
from parkflow.admin.subscriptions.models import (
    DashboardSummary,
    FilteredPage,
    FinancialSummary,
    HistoryEntry,
    HistoryPage,
    MutationOutcome,
    MutationStatus,
    OperationPhase,
    OperationState,
    Plan,
    SortField,
    StatusCategory,
    SubscriptionStatus,
    TenantSubscriptionRecord,
    ViewQuery,
)
from parkflow.admin.subscriptions.registry import SubscriptionRegistry, select_page
from parkflow.admin.subscriptions.status import classify, days_remaining

__all__ = [
    # Stores and services
    "PlanCatalogStore",
    "SubscriptionRegistry",
    "MutationCoordinator",
    "HistoryPager",
    "DashboardPresenter",
    "SubscriptionConsole",
    "SubscriptionBackendClient",
    "EventEmitter",
    "SubscriptionEvents",
    # Pure functions
    "classify",
    "days_remaining",
    "select_page",
    # Models
    "Plan",
    "TenantSubscriptionRecord",
    "HistoryEntry",
    "StatusCategory",
    "SubscriptionStatus",
    "SortField",
    "ViewQuery",
    "FilteredPage",
    "HistoryPage",
    "FinancialSummary",
    "DashboardSummary",
    "OperationPhase",
    "OperationState",
    "MutationStatus",
    "MutationOutcome",
    # Drafts
    "PlanDraft",
    "AssignDraft",
    "ExtendDraft",
    "ExtendMode",
    # Exceptions
    "SubscriptionConsoleError",
    "SubscriptionValidationError",
    "BackendRequestError",
    "BackendAuthenticationError",
    "BackendNotFoundError",
    "PlanNotFoundError",
    "TenantNotFoundError",
]
