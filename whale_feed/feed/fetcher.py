"""Paginated fetcher - loads pages from the query service into the feed state."""

import logging
from dataclasses import dataclass, field

from ..api.transactions_api import TransactionApiClient, WhaleTransaction
from ..errors import TransactionApiError
from .expander import expand
from .predicate import FilterPredicate
from .state import FeedState

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of one fetch attempt."""

    items: list[WhaleTransaction] = field(default_factory=list)
    total_count: int = 0
    has_more: bool = False
    ok: bool = True
    # False when a newer predicate superseded this request before it finished
    applied: bool = True


class PaginatedFetcher:
    """
    Fetches pages and applies them to the feed state.

    Every fresh load (and every invalidate()) starts a new generation. A
    response is applied only if its generation is still current, so a slow
    response for an old predicate never overwrites newer results.
    """

    def __init__(self, api: TransactionApiClient, state: FeedState):
        self.api = api
        self.state = state
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self):
        """Discard whatever is in flight."""
        self._generation += 1
        self.state.loading = False
        self.state.loading_more = False

    async def fetch(
        self,
        page: int,
        page_size: int,
        predicate: FilterPredicate,
        is_load_more: bool = False,
    ) -> FetchResult:
        """
        Fetch one page and apply it.

        A fresh load replaces the visible list; a load-more appends. Errors
        are logged and degrade the state instead of propagating.
        """
        if not is_load_more:
            self.invalidate()
        generation = self._generation

        if is_load_more:
            self.state.loading_more = True
        else:
            self.state.loading = True

        try:
            result = await self.api.get_transactions(
                page, page_size, predicate.to_query_params()
            )
        except TransactionApiError as e:
            logger.error(f"Error fetching transactions (page {page}): {e}")
            return self._apply_failure(generation, is_load_more)
        except Exception as e:
            logger.error(
                f"Unexpected error fetching transactions (page {page}): {e}",
                exc_info=True,
            )
            return self._apply_failure(generation, is_load_more)

        items = expand(result.transactions, predicate.amount)
        has_more = page * page_size < result.total

        if generation != self._generation:
            logger.debug(f"Discarding stale response for page {page}")
            return FetchResult(items, result.total, has_more, applied=False)

        if is_load_more:
            self.state.transactions = self.state.transactions + items
            self.state.loading_more = False
        else:
            self.state.transactions = items
            self.state.new_ids.clear()
            self.state.loading = False

        self.state.cursor.page = page
        self.state.cursor.has_more = has_more

        logger.debug(
            f"Fetched page {page}: {len(items)} items, total={result.total}, "
            f"has_more={has_more}"
        )
        return FetchResult(items, result.total, has_more)

    def _apply_failure(self, generation: int, is_load_more: bool) -> FetchResult:
        if generation != self._generation:
            return FetchResult(ok=False, applied=False)

        if is_load_more:
            self.state.loading_more = False
        else:
            self.state.transactions = []
            self.state.new_ids.clear()
            self.state.loading = False
        self.state.cursor.has_more = False
        return FetchResult(ok=False)
