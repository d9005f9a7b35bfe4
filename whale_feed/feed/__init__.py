"""Live transaction reconciliation: predicate, expansion, pagination and live matching."""

from .controller import FilterStateController
from .expander import expand, format_age
from .fetcher import FetchResult, PaginatedFetcher
from .matcher import BUFFERED, COUNTED, MERGED, LiveEventMatcher
from .predicate import (
    FilterPredicate,
    matches,
    parse_amount,
    parse_market_cap,
)
from .session import WhaleFeed
from .state import FeedState, PaginationCursor

__all__ = [
    "BUFFERED",
    "COUNTED",
    "MERGED",
    "FeedState",
    "FetchResult",
    "FilterPredicate",
    "FilterStateController",
    "LiveEventMatcher",
    "PaginatedFetcher",
    "PaginationCursor",
    "WhaleFeed",
    "expand",
    "format_age",
    "matches",
    "parse_amount",
    "parse_market_cap",
]
