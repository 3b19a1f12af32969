"""
Per-tenant subscription history pager.

The backend returns a tenant's full history newest-first; pagination happens
here. The full list is cached per tenant so paging does not refetch it.
"""

import math

import structlog
from cachetools import TTLCache

from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.exceptions import SubscriptionValidationError
from parkflow.admin.subscriptions.models import HistoryEntry, HistoryPage

logger = structlog.get_logger(__name__)


def slice_history(
    tenant_id: str, entries: list[HistoryEntry], page: int, page_size: int
) -> HistoryPage:
    """Entries ``[(page - 1) * page_size, page * page_size)`` of the full list."""
    if page < 1:
        raise SubscriptionValidationError("Page must be at least 1", field="page")
    if page_size < 1:
        raise SubscriptionValidationError("Page size must be at least 1", field="page_size")

    start = (page - 1) * page_size
    return HistoryPage(
        tenant_id=tenant_id,
        entries=tuple(entries[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=len(entries),
        total_pages=math.ceil(len(entries) / page_size),
    )


class HistoryPager:
    """Fetches and pages a tenant's append-only subscription history."""

    def __init__(
        self,
        client: SubscriptionBackendClient,
        page_size: int = 5,
        cache_ttl: int = 60,
        cache_size: int = 256,
    ) -> None:
        self.client = client
        self.page_size = page_size
        # ttl 0 disables caching: every page request refetches
        self._cache: TTLCache | None = (
            TTLCache(maxsize=cache_size, ttl=cache_ttl) if cache_ttl > 0 else None
        )
        # Bumped by invalidate(); a fetch that started under an older value
        # returns its entries but does not cache them
        self._epoch = 0
        self._generations: dict[str, int] = {}

    async def fetch(self, tenant_id: str, refresh: bool = False) -> list[HistoryEntry]:
        """Full history for a tenant, from cache unless ``refresh``."""
        if not tenant_id:
            raise SubscriptionValidationError("No contractor selected", field="tenant_id")

        if self._cache is not None and not refresh and tenant_id in self._cache:
            return self._cache[tenant_id]

        generation = self._generation(tenant_id)
        entries = await self.client.get_tenant_subscription_history(tenant_id)
        logger.debug("Subscription history fetched", tenant_id=tenant_id, count=len(entries))
        if self._cache is None:
            return entries
        if self._generation(tenant_id) != generation:
            logger.debug("Not caching history fetched before invalidation", tenant_id=tenant_id)
        else:
            self._cache[tenant_id] = entries
        return entries

    def _generation(self, tenant_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(tenant_id, 0)

    async def get_page(
        self,
        tenant_id: str,
        page: int = 1,
        page_size: int | None = None,
        refresh: bool = False,
    ) -> HistoryPage:
        size = self.page_size if page_size is None else page_size
        # Reject bad input before fetching
        if page < 1 or size < 1:
            return slice_history(tenant_id, [], page, size)
        entries = await self.fetch(tenant_id, refresh=refresh)
        return slice_history(tenant_id, entries, page, size)

    def invalidate(self, tenant_id: str | None = None) -> None:
        """Forget cached history for one tenant, or for all of them."""
        if self._cache is None:
            return
        if tenant_id is None:
            self._epoch += 1
            self._generations.clear()
            self._cache.clear()
        else:
            self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
            self._cache.pop(tenant_id, None)
