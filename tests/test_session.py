"""Tests for the filter state controller and the mounted feed session."""

from unittest.mock import AsyncMock

import pytest

from whale_feed.api.live_feed import LiveFeedClient
from whale_feed.api.transactions_api import TransactionPage
from whale_feed.feed.predicate import FilterPredicate
from whale_feed.feed.session import WhaleFeed
from whale_feed.profiles import KOL, WHALE


def live_event(tx_id: str, tx_type: str = "buy", feed_type: str = "allWhaleTransactions", **fields):
    data = {
        "_id": tx_id,
        "signature": f"sig-{tx_id}",
        "type": tx_type,
        "tokenInSymbol": "SOL",
        "tokenOutSymbol": "BONK",
        "hotnessScore": 6,
        "whaleLabel": ["SMART MONEY"],
        "amount": {"buyAmount": "1200", "sellAmount": "900"},
    }
    data.update(fields)
    return {"type": feed_type, "data": data}


@pytest.fixture
def live_feed() -> LiveFeedClient:
    return LiveFeedClient("ws://localhost:9090")


@pytest.fixture
def feed(mock_api, live_feed, repository) -> WhaleFeed:
    return WhaleFeed(WHALE, mock_api, live_feed, repository, page_size=10, debounce_ms=5)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_restores_filters_and_loads_first_page(
        self, feed, mock_api, live_feed, repository, make_tx
    ) -> None:
        await repository.save_predicate(WHALE.storage_key, FilterPredicate(hotness="high"))
        mock_api.get_transactions = AsyncMock(
            return_value=TransactionPage([make_tx()], total=25, total_pages=3, page=1)
        )

        await feed.start()

        assert feed.predicate == FilterPredicate(hotness="high")
        mock_api.get_transactions.assert_awaited_once_with(1, 10, {"hotness": "high"})
        assert len(feed.transactions) == 1
        assert feed.has_more is True
        assert live_feed.listener_count(WHALE.live_event) == 1
        await feed.stop()

    @pytest.mark.asyncio
    async def test_stop_detaches_listener_and_timer(self, feed, live_feed) -> None:
        await feed.start()
        await feed.set_predicate(FilterPredicate(transaction_type="buy"))

        await feed.stop()

        assert live_feed.listener_count(WHALE.live_event) == 0
        assert feed.controller._refetch_task is None
        assert not feed.mounted

    @pytest.mark.asyncio
    async def test_corrupt_persisted_filters_fall_back_to_default(
        self, feed, repository
    ) -> None:
        await repository.set_value(WHALE.storage_key, "{not json")

        await feed.start()

        assert feed.predicate.is_default
        await feed.stop()


class TestSetPredicate:
    @pytest.mark.asyncio
    async def test_persists_and_resets(self, feed, mock_api, repository, make_tx) -> None:
        mock_api.get_transactions = AsyncMock(
            return_value=TransactionPage([make_tx()], total=40, total_pages=4, page=1)
        )
        await feed.start()
        await feed.load_next_page()
        assert feed.page == 2

        await feed.set_predicate(FilterPredicate(transaction_type="sell"))

        assert feed.page == 1
        assert feed.transactions == []
        stored = await repository.load_predicate(WHALE.storage_key)
        assert stored == FilterPredicate(transaction_type="sell")
        await feed.stop()

    @pytest.mark.asyncio
    async def test_edit_burst_issues_one_fetch(self, feed, mock_api) -> None:
        await feed.start()
        mock_api.get_transactions.reset_mock()
        # Wide enough that the SQLite writes between edits cannot outlast it
        feed.controller.debounce = 0.5

        await feed.set_predicate(FilterPredicate(age_max=10))
        await feed.set_predicate(FilterPredicate(age_max=20))
        await feed.set_predicate(FilterPredicate(age_max=30))
        await feed.wait_for_refetch()

        mock_api.get_transactions.assert_awaited_once_with(1, 10, {"ageMax": "30"})
        await feed.stop()

    @pytest.mark.asyncio
    async def test_pending_match_is_merged_on_predicate_change(
        self, feed, live_feed
    ) -> None:
        await feed.start()
        await feed.set_predicate(FilterPredicate(hotness="high"))
        await feed.wait_for_refetch()

        await live_feed.dispatch(WHALE.live_event, live_event("A", "sell"))
        await live_feed.dispatch(WHALE.live_event, live_event("B", "buy"))
        assert len(feed.matcher.pending) == 2
        assert feed.new_count == 2

        await feed.set_predicate(FilterPredicate(transaction_type="buy"))

        assert [tx.id for tx in feed.transactions] == ["B"]
        assert [tx.id for tx in feed.matcher.pending] == ["A"]
        assert feed.new_count == 1
        assert feed.has_new
        await feed.stop()


class TestLiveEvents:
    @pytest.mark.asyncio
    async def test_matching_event_is_shown_on_first_page(self, feed, live_feed) -> None:
        await feed.start()

        await live_feed.dispatch(WHALE.live_event, live_event("L1"))

        assert [tx.id for tx in feed.transactions] == ["L1"]
        assert "L1" in feed.state.new_ids
        feed.clear_new("L1")
        assert not feed.state.new_ids
        await feed.stop()

    @pytest.mark.asyncio
    async def test_other_feed_types_are_ignored(self, feed, live_feed) -> None:
        await feed.start()

        await live_feed.dispatch(
            WHALE.live_event, live_event("K1", feed_type="allInfluencerWhaleTransactions")
        )
        await live_feed.dispatch(WHALE.live_event, {"type": "allWhaleTransactions"})
        await live_feed.dispatch(WHALE.live_event, "not an object")

        assert feed.transactions == []
        assert feed.new_count == 0
        await feed.stop()

    @pytest.mark.asyncio
    async def test_malformed_transaction_is_dropped(self, feed, live_feed) -> None:
        await feed.start()

        await live_feed.dispatch(
            WHALE.live_event, {"type": "allWhaleTransactions", "data": {"type": "buy"}}
        )

        assert feed.transactions == []
        await feed.stop()

    @pytest.mark.asyncio
    async def test_no_events_after_stop(self, feed, live_feed) -> None:
        await feed.start()
        await feed.stop()

        await live_feed.dispatch(WHALE.live_event, live_event("late"))

        assert feed.transactions == []

    @pytest.mark.asyncio
    async def test_kol_profile_uses_its_own_event(
        self, mock_api, live_feed, repository
    ) -> None:
        kol_feed = WhaleFeed(KOL, mock_api, live_feed, repository, debounce_ms=5)
        await kol_feed.start()

        await live_feed.dispatch(
            KOL.live_event,
            live_event(
                "K1",
                feed_type="allInfluencerWhaleTransactions",
                influencerName="Ansem",
            ),
        )

        assert [tx.id for tx in kol_feed.transactions] == ["K1"]
        assert kol_feed.transactions[0].influencer_name == "Ansem"
        await kol_feed.stop()


class TestPagination:
    @pytest.mark.asyncio
    async def test_load_next_page_stops_when_exhausted(
        self, feed, mock_api, make_tx
    ) -> None:
        mock_api.get_transactions = AsyncMock(
            return_value=TransactionPage([make_tx()], total=15, total_pages=2, page=1)
        )
        await feed.start()

        second = await feed.load_next_page()
        assert second is not None
        assert second.has_more is False

        assert await feed.load_next_page() is None
        assert mock_api.get_transactions.await_count == 2
        await feed.stop()


class TestJumpToLatest:
    @pytest.mark.asyncio
    async def test_clears_everything(self, feed, live_feed, mock_api, repository) -> None:
        await feed.start()
        await feed.set_predicate(FilterPredicate(transaction_type="sell"))
        await feed.wait_for_refetch()
        await live_feed.dispatch(WHALE.live_event, live_event("X", "buy"))
        assert feed.has_new
        mock_api.get_transactions.reset_mock()

        await feed.jump_to_latest()
        await feed.wait_for_refetch()

        assert feed.matcher.pending == []
        assert feed.new_count == 0
        assert not feed.has_new
        assert feed.predicate.is_default
        assert feed.page == 1
        assert (await repository.load_predicate(WHALE.storage_key)).is_default
        mock_api.get_transactions.assert_awaited_once_with(1, 10, {})
        await feed.stop()
