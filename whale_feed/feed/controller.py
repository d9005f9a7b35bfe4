"""Filter state controller - owns the predicate and the pagination cursor."""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from .fetcher import FetchResult, PaginatedFetcher
from .predicate import FilterPredicate
from .state import FeedState

if TYPE_CHECKING:
    from ..db import Repository

logger = logging.getLogger(__name__)


class FilterStateController:
    """
    Holds the current predicate and reacts to changes.

    set_predicate() persists the new predicate, resets pagination and the
    visible list, notifies listeners (the live matcher re-checks its
    buffer), then schedules a debounced page-1 refetch so a burst of edits
    issues a single request.
    """

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        state: FeedState,
        repository: "Repository",
        storage_key: str,
        debounce_ms: int = 100,
        on_refetch: Callable[[FetchResult], object] | None = None,
    ):
        self.fetcher = fetcher
        self.on_refetch = on_refetch
        self.state = state
        self.repository = repository
        self.storage_key = storage_key
        self.debounce = debounce_ms / 1000
        self._predicate = FilterPredicate()
        self._listeners: list[Callable[[], object]] = []
        self._refetch_task: asyncio.Task | None = None

    @property
    def current_predicate(self) -> FilterPredicate:
        return self._predicate

    def get_predicate(self) -> FilterPredicate:
        """Accessor handed to components that must always see the latest predicate."""
        return self._predicate

    def add_listener(self, callback: Callable[[], object]):
        """Call ``callback`` after every predicate change, before the refetch."""
        self._listeners.append(callback)

    async def load(self) -> FilterPredicate:
        """Restore the persisted predicate without triggering a fetch."""
        self._predicate = await self.repository.load_predicate(self.storage_key)
        logger.info(f"Loaded filters: {self._predicate.to_query_params() or 'none'}")
        return self._predicate

    async def set_predicate(self, predicate: FilterPredicate):
        """Replace the predicate and schedule a refetch from page 1."""
        self._predicate = predicate

        try:
            await self.repository.save_predicate(self.storage_key, predicate)
        except Exception as e:
            logger.error(f"Failed to persist filters: {e}")

        self.state.cursor.reset()
        self.state.transactions = []
        self.state.new_ids.clear()
        self.fetcher.invalidate()

        for callback in self._listeners:
            callback()

        self._schedule_refetch()

    async def refresh(self) -> FetchResult:
        """Fetch page 1 immediately with the current predicate."""
        self.cancel_refetch()
        self.state.cursor.reset()
        return await self.fetcher.fetch(
            1, self.state.page_size, self._predicate, is_load_more=False
        )

    async def load_next_page(self) -> FetchResult | None:
        """Advance to the next page, unless there is none or a load is running."""
        cursor = self.state.cursor
        if not cursor.has_more or self.state.loading or self.state.loading_more:
            return None

        return await self.fetcher.fetch(
            cursor.page + 1, cursor.page_size, self._predicate, is_load_more=True
        )

    async def wait_for_refetch(self):
        """Wait for a scheduled refetch, if any, to finish."""
        if self._refetch_task:
            try:
                await self._refetch_task
            except asyncio.CancelledError:
                pass

    def cancel_refetch(self):
        if self._refetch_task and not self._refetch_task.done():
            self._refetch_task.cancel()
        self._refetch_task = None

    def _schedule_refetch(self):
        self.cancel_refetch()
        self._refetch_task = asyncio.create_task(self._debounced_refetch())

    async def _debounced_refetch(self):
        await asyncio.sleep(self.debounce)
        result = await self.fetcher.fetch(
            1, self.state.page_size, self._predicate, is_load_more=False
        )
        if self.on_refetch:
            self.on_refetch(result)
