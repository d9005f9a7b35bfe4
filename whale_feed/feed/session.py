"""Feed session - wires fetcher, matcher and controller for one feed."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from ..api.live_feed import LiveFeedClient, Subscription
from ..api.transactions_api import (
    TransactionApiClient,
    WhaleTransaction,
    parse_transaction,
)
from ..errors import TransactionParseError
from ..profiles import FeedProfile
from .controller import FilterStateController
from .fetcher import FetchResult, PaginatedFetcher
from .matcher import LiveEventMatcher
from .predicate import FilterPredicate
from .state import FeedState, PaginationCursor

if TYPE_CHECKING:
    from ..db import Repository

logger = logging.getLogger(__name__)


class WhaleFeed:
    """
    A mounted transaction feed.

    start() restores the persisted filters, subscribes to the live feed and
    loads page 1; stop() detaches everything so nothing fires afterwards.
    ``on_change`` is called after each state mutation.
    """

    def __init__(
        self,
        profile: FeedProfile,
        api: TransactionApiClient,
        live_feed: LiveFeedClient,
        repository: "Repository",
        page_size: int = 10,
        debounce_ms: int = 100,
        pending_capacity: int = 50,
        on_change: Callable[["WhaleFeed"], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.profile = profile
        self.api = api
        self.live_feed = live_feed
        self.on_change = on_change

        self.state = FeedState(cursor=PaginationCursor(page_size=page_size))
        self.fetcher = PaginatedFetcher(api, self.state)
        self.controller = FilterStateController(
            self.fetcher,
            self.state,
            repository,
            profile.storage_key,
            debounce_ms=debounce_ms,
            on_refetch=lambda result: self._notify(),
        )
        self.matcher = LiveEventMatcher(
            self.state,
            self.controller.get_predicate,
            capacity=pending_capacity,
            clock=clock,
        )
        self.controller.add_listener(self.matcher.reevaluate)

        self._subscription: Subscription | None = None

    # Read-only view for the UI layer

    @property
    def transactions(self) -> list[WhaleTransaction]:
        return list(self.state.transactions)

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def loading_more(self) -> bool:
        return self.state.loading_more

    @property
    def has_more(self) -> bool:
        return self.state.cursor.has_more

    @property
    def page(self) -> int:
        return self.state.cursor.page

    @property
    def new_count(self) -> int:
        return self.state.new_count

    @property
    def has_new(self) -> bool:
        return self.state.has_new

    @property
    def predicate(self) -> FilterPredicate:
        return self.controller.current_predicate

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    # Lifecycle

    async def start(self) -> FetchResult:
        """Mount: restore filters, subscribe to live events, load page 1."""
        await self.controller.load()
        self._subscription = self.live_feed.subscribe(
            self.profile.live_event, self._on_live_event
        )
        logger.info(f"{self.profile.name} feed mounted")
        result = await self.controller.refresh()
        self._notify()
        return result

    async def stop(self):
        """Unmount: unsubscribe and cancel the pending refetch."""
        if self._subscription:
            self._subscription.cancel()
            self._subscription = None
        self.controller.cancel_refetch()
        self.fetcher.invalidate()
        logger.info(f"{self.profile.name} feed unmounted")

    # Entry points

    async def set_predicate(self, predicate: FilterPredicate):
        await self.controller.set_predicate(predicate)
        self._notify()

    async def load_next_page(self) -> FetchResult | None:
        result = await self.controller.load_next_page()
        if result is not None:
            self._notify()
        return result

    async def jump_to_latest(self):
        """Drop buffered live events and counters, clear filters, reload page 1."""
        self.matcher.clear()
        self.state.reset_counters()
        await self.controller.set_predicate(FilterPredicate())
        self._notify()

    async def wait_for_refetch(self):
        await self.controller.wait_for_refetch()

    def clear_new(self, tx_id: str):
        self.state.clear_new(tx_id)

    # Live events

    async def _on_live_event(self, event_data: Any):
        if not isinstance(event_data, dict):
            return
        if event_data.get("type") != self.profile.live_type:
            return

        payload = event_data.get("data")
        if not payload:
            return

        try:
            tx = parse_transaction(payload)
        except TransactionParseError as e:
            logger.warning(f"Dropping malformed live transaction: {e}")
            return

        outcome = self.matcher.handle(tx)
        logger.debug(f"Live transaction {tx.signature[:12]}... {outcome}")
        self._notify()

    def _notify(self):
        if self.on_change:
            try:
                self.on_change(self)
            except Exception as e:
                logger.error(f"Error in change callback: {e}", exc_info=True)
