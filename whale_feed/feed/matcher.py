"""Live event matcher - reconciles pushed transactions with the visible page."""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable

from ..api.transactions_api import WhaleTransaction
from .expander import expand
from .predicate import FilterPredicate, matches
from .state import FeedState

logger = logging.getLogger(__name__)

MERGED = "merged"
COUNTED = "counted"
BUFFERED = "buffered"


class LiveEventMatcher:
    """
    Decides where each live transaction goes.

    Matching transactions are merged into page 1 or, on later pages, only
    counted. Non-matching ones are kept in a bounded, most-recent-first
    pending buffer (deduplicated by signature) so they can be merged if the
    predicate later changes to admit them. Every arrival that is not merged
    bumps the new-transaction counter.

    The predicate is read through ``get_predicate`` at the moment of use,
    never captured.
    """

    def __init__(
        self,
        state: FeedState,
        get_predicate: Callable[[], FilterPredicate],
        capacity: int = 50,
        clock: Callable[[], datetime] | None = None,
    ):
        self.state = state
        self.get_predicate = get_predicate
        self.capacity = capacity
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._pending: deque[WhaleTransaction] = deque(maxlen=capacity)

    @property
    def pending(self) -> list[WhaleTransaction]:
        """Buffered transactions, most recent first."""
        return list(self._pending)

    def handle(self, tx: WhaleTransaction) -> str:
        """Process one live transaction; returns MERGED, COUNTED or BUFFERED."""
        predicate = self.get_predicate()
        now = self._clock()

        if matches(tx, predicate, now):
            if self.state.cursor.page == 1:
                self._merge([tx], predicate, now)
                return MERGED

            self.state.note_new_arrival()
            return COUNTED

        self.buffer(tx)
        self.state.note_new_arrival()
        return BUFFERED

    def buffer(self, tx: WhaleTransaction) -> bool:
        """Add a transaction to the pending buffer; False if its signature is already held."""
        if any(held.signature == tx.signature for held in self._pending):
            logger.debug(f"Pending buffer already holds {tx.signature[:12]}...")
            return False

        # appendleft on a full deque drops the oldest entry from the right
        self._pending.appendleft(tx)
        return True

    def reevaluate(self) -> int:
        """
        Re-match the pending buffer after a predicate change.

        Matching entries leave the buffer and, when on page 1, are merged
        into the visible list. The counter is reset and then set to the
        number of entries still pending. Returns how many entries matched.
        """
        predicate = self.get_predicate()
        now = self._clock()
        self.state.reset_counters()

        matched = [tx for tx in self._pending if matches(tx, predicate, now)]
        if matched:
            if self.state.cursor.page == 1:
                self._merge(matched, predicate, now)
            matched_signatures = {tx.signature for tx in matched}
            remaining = [
                tx for tx in self._pending if tx.signature not in matched_signatures
            ]
            self._pending = deque(remaining, maxlen=self.capacity)
            logger.debug(f"{len(matched)} pending transactions now match filters")

        self.state.note_new_arrival(len(self._pending))
        return len(matched)

    def clear(self):
        self._pending.clear()

    def _merge(
        self,
        records: list[WhaleTransaction],
        predicate: FilterPredicate,
        now: datetime,
    ):
        self.state.prepend(expand(records, predicate.amount, now))
