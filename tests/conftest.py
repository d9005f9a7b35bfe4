"""Shared test fixtures."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from whale_feed.api.transactions_api import TokenSide, TransactionPage, WhaleTransaction
from whale_feed.db import Repository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

SOL = "So11111111111111111111111111111111111111112"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_tx():
    """Build a WhaleTransaction with sensible defaults (a $1,500 BONK buy)."""

    def _make(**overrides) -> WhaleTransaction:
        tx_id = overrides.pop("id", "tx1")
        fields = {
            "id": tx_id,
            "signature": overrides.pop("signature", f"sig-{tx_id}"),
            "timestamp": NOW - timedelta(minutes=5),
            "type": "buy",
            "token_in": TokenSide(address=SOL, symbol="SOL", name="Solana", usd_amount=1500.0),
            "token_out": TokenSide(address=BONK, symbol="BONK", name="Bonk", usd_amount=1500.0),
            "whale_address": "Wha1e111111111111111111111111111111111111",
            "whale_labels": ["SMART MONEY"],
            "hotness_score": 5,
            "buy_amount": 1500.0,
            "sell_amount": 0.0,
            "buy_market_cap": 250_000.0,
            "token_out_age": NOW - timedelta(days=2),
            "token_in_age": NOW - timedelta(days=800),
        }
        fields.update(overrides)
        return WhaleTransaction(**fields)

    return _make


@pytest.fixture
def mock_api():
    """A TransactionApiClient stand-in returning an empty page by default."""
    api = MagicMock()
    api.get_transactions = AsyncMock(
        return_value=TransactionPage(transactions=[], total=0, total_pages=0, page=1)
    )
    api.close = AsyncMock()
    return api


@pytest_asyncio.fixture
async def repository(tmp_path) -> AsyncGenerator[Repository, None]:
    repo = Repository(tmp_path / "whale_feed.db")
    await repo.initialize()
    yield repo
    await repo.close()
