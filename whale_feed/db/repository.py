"""Database repository for persisted settings and filter predicates."""

import json
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..errors import InvalidFilterError
from ..feed.predicate import FilterPredicate
from .models import SCHEMA

logger = logging.getLogger(__name__)


class Repository:
    """Database repository for all persistence operations."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self):
        """Initialize the database and create tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

        logger.info(f"Database initialized at {self.db_path}")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    # Key-Value Operations

    async def get_value(self, key: str) -> str | None:
        """Get a stored value, or None if the key was never written."""
        async with self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["value"] if row else None

    async def set_value(self, key: str, value: str):
        """Insert or overwrite a stored value."""
        await self.conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        await self.conn.commit()

    # Filter Predicate Operations

    async def load_predicate(self, key: str) -> FilterPredicate:
        """Load a persisted predicate, falling back to the default if absent or corrupt."""
        raw = await self.get_value(key)
        if raw is None:
            return FilterPredicate()

        try:
            return FilterPredicate.from_dict(json.loads(raw))
        except (json.JSONDecodeError, InvalidFilterError, TypeError) as e:
            logger.warning(f"Ignoring corrupt filters stored under {key!r}: {e}")
            return FilterPredicate()

    async def save_predicate(self, key: str, predicate: FilterPredicate):
        """Persist a predicate under a fixed key."""
        await self.set_value(key, json.dumps(predicate.to_dict()))
