"""Feed state shared by the fetcher, matcher and controller."""

from dataclasses import dataclass, field

from ..api.transactions_api import WhaleTransaction


@dataclass
class PaginationCursor:
    """1-based page position for the infinite-scrolled list."""

    page: int = 1
    page_size: int = 10
    has_more: bool = True

    def reset(self):
        self.page = 1
        self.has_more = True


@dataclass
class FeedState:
    """
    Everything the UI layer reads.

    The fetcher replaces or appends ``transactions``; the live matcher
    prepends and truncates. ``new_ids`` holds view-record ids pushed live
    that are still shown as new.
    """

    cursor: PaginationCursor = field(default_factory=PaginationCursor)
    transactions: list[WhaleTransaction] = field(default_factory=list)
    loading: bool = False
    loading_more: bool = False
    new_count: int = 0
    has_new: bool = False
    new_ids: set[str] = field(default_factory=set)

    @property
    def page_size(self) -> int:
        return self.cursor.page_size

    def prepend(self, items: list[WhaleTransaction]):
        """Put live items at the head of the list, keeping at most one page."""
        if not items:
            return
        self.transactions = (items + self.transactions)[: self.page_size]
        self.new_ids.update(tx.id for tx in items)
        visible = {tx.id for tx in self.transactions}
        self.new_ids &= visible

    def clear_new(self, tx_id: str):
        self.new_ids.discard(tx_id)

    def note_new_arrival(self, count: int = 1):
        self.new_count += count
        self.has_new = self.new_count > 0

    def reset_counters(self):
        self.new_count = 0
        self.has_new = False
