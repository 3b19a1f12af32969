"""
Subscription console facade.

Wires the backend client, stores and services the operator dashboard needs
and loads them. The catalog and the registry load concurrently; a failure in
one does not prevent the other from loading.
"""

import asyncio
from datetime import datetime
from typing import Any

import structlog

from parkflow.admin.settings import get_settings
from parkflow.admin.subscriptions.catalog import PlanCatalogStore
from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.coordinator import MutationCoordinator
from parkflow.admin.subscriptions.dashboard import DashboardPresenter
from parkflow.admin.subscriptions.events import EventEmitter
from parkflow.admin.subscriptions.exceptions import TenantNotFoundError
from parkflow.admin.subscriptions.history import HistoryPager
from parkflow.admin.subscriptions.models import (
    DashboardSummary,
    FilteredPage,
    HistoryPage,
    TenantSubscriptionRecord,
)
from parkflow.admin.subscriptions.registry import Clock, SubscriptionRegistry, utcnow

logger = structlog.get_logger(__name__)


class SubscriptionConsole:
    """Everything the subscription management screen is built from."""

    def __init__(
        self,
        client: SubscriptionBackendClient,
        catalog: PlanCatalogStore,
        registry: SubscriptionRegistry,
        coordinator: MutationCoordinator,
        history: HistoryPager,
        presenter: DashboardPresenter | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = client
        self.catalog = catalog
        self.registry = registry
        self.coordinator = coordinator
        self.history = history
        self.presenter = presenter or DashboardPresenter()
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        client: SubscriptionBackendClient | None = None,
        clock: Clock = utcnow,
        **client_overrides: Any,
    ) -> "SubscriptionConsole":
        """Build a console from application settings.

        Keyword arguments other than ``client`` and ``clock`` override the
        backend client options (``base_url``, ``token``, ...).
        """
        console_settings = get_settings().console
        client = client or SubscriptionBackendClient.from_settings(**client_overrides)
        events = EventEmitter()

        catalog = PlanCatalogStore(client, events=events)
        registry = SubscriptionRegistry(
            client, page_size=console_settings.default_page_size, events=events, clock=clock
        )
        history = HistoryPager(
            client,
            page_size=console_settings.history_page_size,
            cache_ttl=console_settings.history_cache_ttl_seconds,
            cache_size=console_settings.history_cache_size,
        )
        coordinator = MutationCoordinator(
            client,
            registry,
            catalog,
            history=history,
            reconcile_delay=console_settings.reconcile_delay_seconds,
            unassign_scope=console_settings.unassign_guard_scope,
            events=events,
            clock=clock,
        )
        return cls(client, catalog, registry, coordinator, history, clock=clock)

    @property
    def events(self) -> EventEmitter:
        return self.registry.events

    async def load(self) -> dict[str, Exception]:
        """
        Load the plan catalog and the tenant subscriptions concurrently.

        Returns:
            Errors keyed by the component that failed ("plans", "subscriptions");
            empty when both loaded.
        """
        results = await asyncio.gather(
            self.catalog.refresh(), self.registry.refresh(), return_exceptions=True
        )

        errors: dict[str, Exception] = {}
        for name, result in zip(("plans", "subscriptions"), results, strict=True):
            if isinstance(result, Exception):
                logger.error("Console load failed", component=name, error=str(result))
                errors[name] = result
            elif isinstance(result, BaseException):
                raise result
        return errors

    def record(self, tenant_id: str) -> TenantSubscriptionRecord:
        record = self.registry.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(f"Contractor {tenant_id} not found", tenant_id=tenant_id)
        return record

    def view(self) -> FilteredPage:
        return self.registry.view()

    def dashboard(self, now: datetime | None = None) -> DashboardSummary:
        """Metric cards over the current filtered set."""
        return self.presenter.summarize(
            self.registry.filtered(), self.catalog.plans, now or self.clock()
        )

    async def history_page(
        self, tenant_id: str, page: int = 1, page_size: int | None = None
    ) -> HistoryPage:
        return await self.history.get_page(tenant_id, page=page, page_size=page_size)

    async def aclose(self) -> None:
        await self.coordinator.aclose()
        await self.client.close()

    async def __aenter__(self) -> "SubscriptionConsole":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
