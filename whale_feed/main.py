"""Main entry point for Whale Feed."""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path

from .alerting import FeedLogger, setup_app_logging
from .api import LiveFeedClient, TransactionApiClient
from .config import Config, load_config
from .db import Repository
from .errors import InvalidFilterError
from .feed import FilterPredicate, WhaleFeed
from .profiles import get_profile

logger = logging.getLogger(__name__)


class WhaleFeedApp:
    """Main application class that owns the connections and the mounted feed."""

    def __init__(self, config: Config, filter_overrides: dict | None = None):
        self.config = config
        self.filter_overrides = filter_overrides or {}
        self.profile = get_profile(config.feed.profile)

        self.repository = Repository(config.database.path)
        self.api = TransactionApiClient(
            config.api.base_url,
            api_path=self.profile.api_path,
            timeout=config.api.timeout_seconds,
        )
        self.feed_logger = FeedLogger(
            log_file=config.logging.file,
            log_level=config.logging.level,
            max_file_size_mb=config.logging.max_file_size_mb,
            backup_count=config.logging.backup_count,
        )

        # One live connection for the whole application
        self.live_feed = LiveFeedClient(
            config.api.websocket_url,
            ping_interval=config.feed.ping_interval,
            reconnect_delay=config.feed.reconnect_delay,
            on_connect=self._on_connect,
            on_disconnect=self._on_disconnect,
        )

        self.feed = WhaleFeed(
            self.profile,
            self.api,
            self.live_feed,
            self.repository,
            page_size=config.feed.page_size,
            debounce_ms=config.feed.debounce_ms,
            pending_capacity=config.feed.pending_capacity,
            on_change=self._on_change,
        )

        self._logged_ids: set[str] = set()
        self._last_new_count = 0

    async def start(self):
        """Start the feed."""
        logger.info(f"Starting Whale Feed ({self.profile.name})...")

        await self.repository.initialize()
        await self.feed.start()

        if self.filter_overrides:
            predicate = replace(self.feed.predicate, **self.filter_overrides)
            logger.info(f"Applying filters: {predicate.to_query_params()}")
            await self.feed.set_predicate(predicate)

        await self.live_feed.connect()

    async def stop(self):
        """Stop the feed gracefully."""
        logger.info("Stopping Whale Feed...")

        await self.feed.stop()
        await self.live_feed.disconnect()
        await self.api.close()
        await self.repository.close()
        self.feed_logger.close()

    async def _on_connect(self):
        logger.info("Connected to live transaction feed")

    async def _on_disconnect(self):
        logger.warning("Disconnected from live transaction feed")

    def _on_change(self, feed: WhaleFeed):
        """Log transactions that became visible and banner count changes."""
        visible = feed.transactions
        for tx in visible:
            if tx.id in self._logged_ids:
                continue
            self._logged_ids.add(tx.id)
            self.feed_logger.log_transaction(tx, is_new=tx.id in feed.state.new_ids)
        self._logged_ids &= {tx.id for tx in visible}

        if feed.new_count != self._last_new_count:
            self._last_new_count = feed.new_count
            if feed.has_new:
                self.feed_logger.log_banner(feed.new_count)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Whale Feed - follow live whale transactions with filters"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--profile", choices=["whale", "kol"], help="Feed to follow (overrides config)"
    )
    parser.add_argument("--type", choices=["buy", "sell", "all"], dest="transaction_type")
    parser.add_argument("--hotness", choices=["high", "medium", "low"])
    parser.add_argument("--min-amount", dest="amount", help='e.g. "1000" or ">$5,000"')
    parser.add_argument(
        "--tag", action="append", dest="tags", help="Whale label filter (repeatable)"
    )
    parser.add_argument("--search", dest="search_query", help="Token symbol or address")
    return parser.parse_args(argv)


def filter_overrides_from_args(args) -> dict:
    """Collect the filter flags that were given on the command line."""
    overrides = {}
    for name in ("transaction_type", "hotness", "amount", "tags", "search_query"):
        value = getattr(args, name, None)
        if value:
            overrides[name] = value
    if "search_query" in overrides:
        overrides["search_type"] = "coin"
    return overrides


async def run_until_shutdown(app, shutdown_event: asyncio.Event) -> int:
    """Run the app until a shutdown signal or until it stops on its own.

    Returns the process exit code: 0 after a requested shutdown, 1 if the
    app stopped first.
    """
    app_task = asyncio.create_task(app.start())
    shutdown_task = asyncio.create_task(shutdown_event.wait())

    done, _ = await asyncio.wait(
        {app_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
    )

    exit_code = 0
    if app_task in done:
        shutdown_task.cancel()
        error = app_task.exception()
        if error:
            logger.error(f"Whale Feed failed: {error}", exc_info=error)
        else:
            logger.error("Whale Feed stopped unexpectedly")
        exit_code = 1

    await app.stop()

    if not app_task.done():
        app_task.cancel()
        try:
            await app_task
        except asyncio.CancelledError:
            pass

    return exit_code


async def main_async(args):
    """Async main function."""
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        sys.exit(1)

    config = load_config(config_path)

    if args.debug:
        config.logging.level = "DEBUG"
    if args.profile:
        config.feed.profile = args.profile

    setup_app_logging(config.logging.level)

    overrides = filter_overrides_from_args(args)
    try:
        replace(FilterPredicate(), **overrides)
    except InvalidFilterError as e:
        logger.error(f"Invalid filter: {e}")
        sys.exit(2)

    app = WhaleFeedApp(config, filter_overrides=overrides)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    exit_code = await run_until_shutdown(app, shutdown_event)
    if exit_code:
        sys.exit(exit_code)


def main():
    """Main entry point."""
    args = parse_args()

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
