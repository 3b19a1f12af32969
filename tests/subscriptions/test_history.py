"""
Tests for the subscription history pager.
"""

import asyncio

import pytest

from parkflow.admin.subscriptions.exceptions import SubscriptionValidationError
from parkflow.admin.subscriptions.history import HistoryPager, slice_history
from parkflow.admin.subscriptions.models import HistoryAction, HistoryEntry


@pytest.fixture
def entries() -> list[HistoryEntry]:
    return [
        HistoryEntry(id=str(i), action="Extended", plan_name="Basic", amount_paid="100")
        for i in range(12)
    ]


class TestSliceHistory:
    """Page slicing."""

    def test_second_page_of_five(self, entries):
        page = slice_history("t1", entries, page=2, page_size=5)

        assert [e.id for e in page.entries] == ["5", "6", "7", "8", "9"]
        assert page.total_items == 12
        assert page.total_pages == 3

    def test_last_page_is_partial(self, entries):
        page = slice_history("t1", entries, page=3, page_size=5)
        assert [e.id for e in page.entries] == ["10", "11"]

    def test_empty_history(self):
        page = slice_history("t1", [], page=1, page_size=5)
        assert page.entries == ()
        assert page.total_pages == 0

    @pytest.mark.parametrize(("page", "size"), [(0, 5), (1, 0), (-1, 5)])
    def test_invalid_inputs(self, entries, page, size):
        with pytest.raises(SubscriptionValidationError):
            slice_history("t1", entries, page=page, page_size=size)


class TestHistoryEntry:
    """Wire aliases."""

    def test_aliases_and_action_normalization(self):
        entry = HistoryEntry.model_validate(
            {
                "id": 7,
                "action": "ASSIGNED",
                "plan_name": "Pro",
                "amount_paid": 250,
                "new_start_date": "2025-01-01T00:00:00",
                "new_end_date": "2025-04-01T00:00:00Z",
                "created_on": "2025-01-01T00:00:05",
            }
        )

        assert entry.id == "7"
        assert entry.action == HistoryAction.ASSIGNED
        assert str(entry.plan_price) == "250"
        assert entry.start_date.tzinfo is not None
        assert entry.end_date.month == 4
        assert entry.created_at.second == 5


@pytest.mark.asyncio
class TestHistoryPager:
    """Fetching and caching."""

    async def test_get_page_fetches_once_per_tenant(self, mock_client, entries):
        mock_client.get_tenant_subscription_history.return_value = entries
        pager = HistoryPager(mock_client, page_size=5)

        first = await pager.get_page("t1", page=1)
        second = await pager.get_page("t1", page=2)

        assert [e.id for e in first.entries] == ["0", "1", "2", "3", "4"]
        assert [e.id for e in second.entries] == ["5", "6", "7", "8", "9"]
        mock_client.get_tenant_subscription_history.assert_awaited_once_with("t1")

    async def test_invalidate_forces_refetch(self, mock_client, entries):
        mock_client.get_tenant_subscription_history.return_value = entries
        pager = HistoryPager(mock_client)

        await pager.get_page("t1")
        pager.invalidate("t1")
        await pager.get_page("t1")

        assert mock_client.get_tenant_subscription_history.await_count == 2

    async def test_zero_ttl_disables_cache(self, mock_client, entries):
        mock_client.get_tenant_subscription_history.return_value = entries
        pager = HistoryPager(mock_client, cache_ttl=0)

        await pager.get_page("t1")
        await pager.get_page("t1")

        assert mock_client.get_tenant_subscription_history.await_count == 2

    async def test_invalid_page_never_fetches(self, mock_client):
        pager = HistoryPager(mock_client)

        with pytest.raises(SubscriptionValidationError):
            await pager.get_page("t1", page=0)
        with pytest.raises(SubscriptionValidationError):
            await pager.get_page("t1", page_size=0)

        mock_client.get_tenant_subscription_history.assert_not_awaited()

    async def test_tenant_required(self, mock_client):
        pager = HistoryPager(mock_client)
        with pytest.raises(SubscriptionValidationError):
            await pager.get_page("")

    async def test_fetch_in_flight_during_invalidate_is_not_cached(self, mock_client, entries):
        release = asyncio.Event()
        calls = []

        async def _history(tenant_id):
            calls.append(tenant_id)
            if len(calls) == 1:
                await release.wait()
                return entries[:1]
            return entries

        mock_client.get_tenant_subscription_history.side_effect = _history
        pager = HistoryPager(mock_client)

        in_flight = asyncio.create_task(pager.get_page("t1"))
        await asyncio.sleep(0)
        pager.invalidate("t1")
        release.set()

        assert (await in_flight).total_items == 1
        assert (await pager.get_page("t1")).total_items == 12
        assert (await pager.get_page("t1", page=2)).total_items == 12
        assert len(calls) == 2

    async def test_invalidate_all_blocks_in_flight_fetches(self, mock_client, entries):
        release = asyncio.Event()

        async def _history(tenant_id):
            await release.wait()
            return entries

        mock_client.get_tenant_subscription_history.side_effect = _history
        pager = HistoryPager(mock_client)

        in_flight = asyncio.create_task(pager.fetch("t1"))
        await asyncio.sleep(0)
        pager.invalidate()
        release.set()
        await in_flight

        mock_client.get_tenant_subscription_history.side_effect = None
        mock_client.get_tenant_subscription_history.return_value = []
        assert await pager.fetch("t1") == []
