"""
Tenant subscription registry.

Holds the unfiltered read replica of tenant subscription records and derives
the filtered, sorted and paginated table view from it. The derivation lives
in ``select_page`` so it can be used and tested without a registry.
"""

import itertools
import math
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

import structlog

from parkflow.admin.subscriptions.client import SubscriptionBackendClient
from parkflow.admin.subscriptions.events import EventEmitter, SubscriptionEvents
from parkflow.admin.subscriptions.exceptions import SubscriptionValidationError
from parkflow.admin.subscriptions.models import (
    FilteredPage,
    SortField,
    TenantSubscriptionRecord,
    ViewQuery,
)
from parkflow.admin.subscriptions.status import days_remaining

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Pure selectors
# ============================================================================


def matches_search(record: TenantSubscriptionRecord, search: str) -> bool:
    """Case-insensitive substring match over company, contact and email."""
    needle = search.strip().lower()
    if not needle:
        return True
    return any(
        needle in (value or "").lower()
        for value in (record.company_name, record.contact_name, record.email)
    )


def filter_records(
    records: Iterable[TenantSubscriptionRecord], search: str = ""
) -> list[TenantSubscriptionRecord]:
    """Records matching the search that have a plan assigned."""
    return [r for r in records if matches_search(r, search) and r.has_plan]


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def clamp_page(page: int, total: int, page_size: int) -> int:
    return min(max(page, 1), page_count(total, page_size))


def _sort_key(sort_by: SortField, now: datetime) -> Callable[[TenantSubscriptionRecord], Any]:
    def key(record: TenantSubscriptionRecord) -> Any:
        if sort_by == SortField.COMPANY_NAME:
            return record.company_name.lower()
        if sort_by == SortField.START_DATE:
            return record.start_date
        if sort_by == SortField.END_DATE:
            return record.end_date
        if sort_by == SortField.DAYS_REMAINING:
            return days_remaining(record.end_date, now)
        return record.status.value if record.status else None

    return key


def sort_records(
    records: list[TenantSubscriptionRecord],
    sort_by: SortField | None,
    descending: bool = False,
    now: datetime | None = None,
) -> list[TenantSubscriptionRecord]:
    """Stable sort; records missing the sort value always go last."""
    if sort_by is None:
        return list(records)

    key = _sort_key(sort_by, now or utcnow())
    present = [r for r in records if key(r) is not None]
    missing = [r for r in records if key(r) is None]
    return sorted(present, key=key, reverse=descending) + missing


def select_page(
    records: Iterable[TenantSubscriptionRecord],
    query: ViewQuery,
    now: datetime | None = None,
) -> FilteredPage:
    """
    Derive one page of the subscription table.

    Out-of-range pages are clamped, never rejected:
    ``page = min(max(requested, 1), max(1, ceil(filtered / page_size)))``.
    """
    if query.page_size < 1:
        raise SubscriptionValidationError("Page size must be at least 1", field="page_size")

    filtered = sort_records(
        filter_records(records, query.search), query.sort_by, query.descending, now
    )
    total = len(filtered)
    page = clamp_page(query.page, total, query.page_size)
    start = (page - 1) * query.page_size

    return FilteredPage(
        items=tuple(filtered[start : start + query.page_size]),
        page=page,
        page_size=query.page_size,
        page_count=page_count(total, query.page_size),
        total=total,
    )


# ============================================================================
# Registry
# ============================================================================


class SubscriptionRegistry:
    """
    Read replica of tenant subscriptions plus the current table query.

    Loads are ordered by ticket: a snapshot older than the last applied one is
    dropped. Local patches bump a per-tenant version so that a snapshot
    requested before the patch cannot overwrite the patched record.
    """

    def __init__(
        self,
        client: SubscriptionBackendClient,
        page_size: int = 10,
        events: EventEmitter | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = client
        self.events = events or EventEmitter()
        self.clock = clock
        self._records: dict[str, TenantSubscriptionRecord] = {}
        self._query = ViewQuery(page_size=page_size)
        self._tickets = itertools.count(1)
        self._last_issued = 0
        self._applied_ticket = 0
        # tenant_id -> ticket counter value at the time of the latest local patch
        self._patched_at: dict[str, int] = {}
        self._loaded = False

    # ------------------------------------------------------------------
    # Source list
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[TenantSubscriptionRecord]:
        return list(self._records.values())

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self, tenant_id: str) -> TenantSubscriptionRecord | None:
        return self._records.get(tenant_id)

    def issue_ticket(self) -> int:
        self._last_issued = next(self._tickets)
        return self._last_issued

    async def refresh(self) -> bool:
        """Fetch the full list from the backend and apply it if still current."""
        ticket = self.issue_ticket()
        records = await self.client.list_tenant_subscriptions()
        return self.apply_snapshot(ticket, records)

    def apply_snapshot(self, ticket: int, records: Iterable[TenantSubscriptionRecord]) -> bool:
        """
        Replace the replica with a backend snapshot.

        Returns False when the snapshot was dropped as stale.
        """
        if ticket < self._applied_ticket:
            logger.info(
                "Dropping stale subscription snapshot",
                ticket=ticket,
                applied_ticket=self._applied_ticket,
            )
            self.events.emit(SubscriptionEvents.STALE_LOAD_DROPPED, ticket=ticket)
            return False

        incoming = {record.tenant_id: record for record in records}
        for tenant_id, patched_at in list(self._patched_at.items()):
            if ticket <= patched_at:
                # Snapshot was requested before the local patch landed
                if tenant_id in self._records:
                    incoming[tenant_id] = self._records[tenant_id]
            else:
                del self._patched_at[tenant_id]

        self._records = incoming
        self._applied_ticket = ticket
        self._loaded = True
        self._reclamp()
        logger.debug("Subscription snapshot applied", ticket=ticket, count=len(incoming))
        self.events.emit(
            SubscriptionEvents.SUBSCRIPTIONS_LOADED, ticket=ticket, count=len(incoming)
        )
        return True

    def patch(self, tenant_id: str, **changes: Any) -> TenantSubscriptionRecord | None:
        """Apply an optimistic local change to one tenant's record."""
        current = self._records.get(tenant_id)
        if current is None:
            logger.warning("Patch for unknown tenant ignored", tenant_id=tenant_id)
            return None

        updated = current.model_copy(update=changes)
        return self.put(updated)

    def put(self, record: TenantSubscriptionRecord) -> TenantSubscriptionRecord:
        """Store a record as the freshest local state for its tenant."""
        self._records[record.tenant_id] = record
        self._patched_at[record.tenant_id] = self._last_issued
        self._reclamp()
        self.events.emit(SubscriptionEvents.SUBSCRIPTION_PATCHED, tenant_id=record.tenant_id)
        return record

    # ------------------------------------------------------------------
    # Table view
    # ------------------------------------------------------------------

    @property
    def query(self) -> ViewQuery:
        return self._query

    def set_search(self, search: str) -> FilteredPage:
        return self._update_query(search=search or "")

    def set_page(self, page: int) -> FilteredPage:
        return self._update_query(page=page)

    def set_page_size(self, page_size: int) -> FilteredPage:
        if page_size < 1:
            raise SubscriptionValidationError("Page size must be at least 1", field="page_size")
        return self._update_query(page_size=page_size)

    def set_sort(self, sort_by: SortField | None, descending: bool = False) -> FilteredPage:
        return self._update_query(sort_by=sort_by, descending=descending)

    def filtered(self) -> list[TenantSubscriptionRecord]:
        """The unpaginated filtered set the dashboard aggregates over."""
        return filter_records(self._records.values(), self._query.search)

    def view(self) -> FilteredPage:
        return select_page(self._records.values(), self._query, self.clock())

    def _update_query(self, **changes: Any) -> FilteredPage:
        self._query = replace(self._query, **changes)
        page = self._reclamp()
        self.events.emit(SubscriptionEvents.VIEW_CHANGED, page=page.page, total=page.total)
        return page

    def _reclamp(self) -> FilteredPage:
        page = self.view()
        if page.page != self._query.page:
            self._query = replace(self._query, page=page.page)
        return page
