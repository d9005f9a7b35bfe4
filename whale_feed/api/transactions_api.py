"""Client for the transaction query service - fetches paginated whale transactions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from ..errors import TransactionApiError, TransactionParseError

logger = logging.getLogger(__name__)


@dataclass
class TokenSide:
    """One side (in or out) of a swap."""

    address: str = ""
    symbol: str = ""
    name: str = ""
    usd_amount: float = 0.0


@dataclass
class WhaleTransaction:
    """A swap observed for a tracked wallet.

    Server records may have ``type == "both"``; the expander turns those into
    one ``buy`` and/or one ``sell`` view-record, which also carry ``age``.
    """

    id: str
    signature: str
    timestamp: datetime | None
    type: str  # buy, sell or both
    token_in: TokenSide = field(default_factory=TokenSide)
    token_out: TokenSide = field(default_factory=TokenSide)
    whale_address: str = ""
    whale_labels: list[str] = field(default_factory=list)
    hotness_score: int = 0
    buy_amount: float = 0.0
    sell_amount: float = 0.0
    buy_market_cap: float = 0.0
    sell_market_cap: float = 0.0
    market_cap: float = 0.0
    has_buy_leg: bool = False
    has_sell_leg: bool = False
    # Token creation times, used for the displayed token age
    token_in_age: datetime | None = None
    token_out_age: datetime | None = None
    token_age: datetime | None = None
    # KOL feed only
    influencer_name: str | None = None
    influencer_username: str | None = None
    # Formatted display age, set on expanded view-records
    age: str | None = None

    def search_fields(self) -> list[str]:
        """Fields that free-text search is matched against."""
        fields = [
            self.token_in.symbol,
            self.token_out.symbol,
            self.token_in.address,
            self.token_out.address,
        ]
        if self.influencer_name:
            fields.append(self.influencer_name)
        if self.influencer_username:
            fields.append(self.influencer_username)
        return fields


@dataclass
class TransactionPage:
    """One page of results from the transaction query service."""

    transactions: list[WhaleTransaction]
    total: int
    total_pages: int
    page: int
    query_time: float | None = None


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO string, epoch seconds or epoch milliseconds into UTC."""
    if value is None or value == "" or value == "Unknown":
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    try:
        if isinstance(value, (int, float)):
            ts = float(value)
            if ts > 1e12:  # Milliseconds
                ts = ts / 1000
            return datetime.fromtimestamp(ts, tz=timezone.utc)

        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_float(value) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _token_side(payload: dict, prefix: str, nested: dict | None) -> TokenSide:
    nested = nested or {}
    return TokenSide(
        address=payload.get(f"{prefix}Address") or nested.get("address") or "",
        symbol=payload.get(f"{prefix}Symbol") or nested.get("symbol") or "",
        name=payload.get(f"{prefix}Name") or nested.get("name") or "",
        usd_amount=_to_float(nested.get("usdAmount")),
    )


def parse_transaction(payload: dict) -> WhaleTransaction:
    """
    Build a WhaleTransaction from a server or push-stream payload.

    Raises:
        TransactionParseError: payload is not a mapping or has no identity
    """
    if not isinstance(payload, dict):
        raise TransactionParseError(
            f"Expected a transaction object, got {type(payload).__name__}"
        )

    tx_id = payload.get("_id") or payload.get("id")
    signature = payload.get("signature")
    if not tx_id and not signature:
        raise TransactionParseError("Transaction has neither id nor signature")

    swap = payload.get("transaction") or {}
    amount = payload.get("amount") or {}
    whale = payload.get("whale") or {}

    market_cap = payload.get("marketCap")
    if isinstance(market_cap, dict):
        buy_market_cap = _to_float(market_cap.get("buyMarketCap"))
        sell_market_cap = _to_float(market_cap.get("sellMarketCap"))
        flat_market_cap = 0.0
    else:
        buy_market_cap = sell_market_cap = 0.0
        flat_market_cap = _to_float(market_cap)

    both_type = payload.get("bothType") or []
    legs = both_type[0] if both_type and isinstance(both_type[0], dict) else {}

    labels = payload.get("whaleLabel") or whale.get("labels") or []
    if isinstance(labels, str):
        labels = [labels]

    return WhaleTransaction(
        id=str(tx_id or signature),
        signature=str(signature or tx_id),
        timestamp=parse_timestamp(payload.get("timestamp")),
        type=str(payload.get("type") or "").lower(),
        token_in=_token_side(payload, "tokenIn", swap.get("tokenIn")),
        token_out=_token_side(payload, "tokenOut", swap.get("tokenOut")),
        whale_address=payload.get("whaleAddress") or whale.get("address") or "",
        whale_labels=[str(label) for label in labels],
        hotness_score=int(_to_float(payload.get("hotnessScore"))),
        buy_amount=_to_float(amount.get("buyAmount")),
        sell_amount=_to_float(amount.get("sellAmount")),
        buy_market_cap=buy_market_cap,
        sell_market_cap=sell_market_cap,
        market_cap=flat_market_cap,
        has_buy_leg=bool(legs.get("buyType")),
        has_sell_leg=bool(legs.get("sellType")),
        token_in_age=parse_timestamp(payload.get("tokenInAge")),
        token_out_age=parse_timestamp(payload.get("tokenOutAge")),
        token_age=parse_timestamp(payload.get("age")),
        influencer_name=payload.get("influencerName"),
        influencer_username=payload.get("influencerUsername"),
    )


def resolved_amount(tx: WhaleTransaction) -> float:
    """USD amount for the side the transaction represents (0 for unresolved types)."""
    if tx.type == "buy":
        return tx.buy_amount or tx.token_out.usd_amount
    if tx.type == "sell":
        return tx.sell_amount or tx.token_in.usd_amount
    return 0.0


def resolved_market_cap(tx: WhaleTransaction) -> float:
    """Raw USD market cap snapshot for the side the transaction represents."""
    if tx.type == "buy" and tx.buy_market_cap:
        return tx.buy_market_cap
    if tx.type == "sell" and tx.sell_market_cap:
        return tx.sell_market_cap
    return tx.market_cap


class TransactionApiClient:
    """Client for the transaction query service."""

    def __init__(
        self,
        base_url: str = "http://localhost:9090/api/v1",
        api_path: str = "/whale/whale-transactions",
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_path = api_path
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_transactions(
        self,
        page: int,
        limit: int,
        filters: dict[str, str] | None = None,
    ) -> TransactionPage:
        """
        Fetch one page of transactions.

        Args:
            page: 1-based page number
            limit: Page size
            filters: Already-serialized filter query parameters

        Returns:
            TransactionPage with the raw (unexpanded) transactions

        Raises:
            TransactionApiError: on transport failure or any non-200 status
        """
        params = {"page": str(page), "limit": str(limit)}
        if filters:
            params.update(filters)

        try:
            response = await self._client.get(
                f"{self.base_url}{self.api_path}",
                params=params,
            )
        except httpx.HTTPError as e:
            raise TransactionApiError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise TransactionApiError(
                f"Failed to fetch transactions: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransactionApiError(f"Invalid JSON in response: {e}") from e

        transactions = []
        for item in data.get("transactions") or []:
            try:
                transactions.append(parse_transaction(item))
            except TransactionParseError as e:
                logger.debug(f"Skipping malformed transaction: {e}")

        return TransactionPage(
            transactions=transactions,
            total=int(data.get("total") or 0),
            total_pages=int(data.get("totalPages") or 0),
            page=int(data.get("page") or page),
            query_time=data.get("queryTime"),
        )
