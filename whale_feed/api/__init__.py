"""Transaction query service and live feed clients."""

from .live_feed import LiveFeedClient, Subscription
from .transactions_api import (
    TokenSide,
    TransactionApiClient,
    TransactionPage,
    WhaleTransaction,
    parse_timestamp,
    parse_transaction,
    resolved_amount,
    resolved_market_cap,
)

__all__ = [
    "LiveFeedClient",
    "Subscription",
    "TokenSide",
    "TransactionApiClient",
    "TransactionPage",
    "WhaleTransaction",
    "parse_timestamp",
    "parse_transaction",
    "resolved_amount",
    "resolved_market_cap",
]
