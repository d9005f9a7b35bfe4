"""Feed logging - formats transactions and new-arrival banners for console and file."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..api.transactions_api import WhaleTransaction, resolved_amount, resolved_market_cap


def format_currency(value: float) -> str:
    """Format a number as currency."""
    if value >= 0:
        return f"${value:,.2f}"
    return f"-${abs(value):,.2f}"


def format_large_number(value: float) -> str:
    """Format large numbers with K/M suffixes."""
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    elif value >= 1_000:
        return f"${value / 1_000:.1f}K"
    return f"${value:.2f}"


class TransactionFormatter(logging.Formatter):
    """Renders transaction and banner records as one-line summaries."""

    LINE_FORMAT = (
        "{marker} {time} | {side:<4} | {symbol:<10} | {amount:>14} | "
        "mcap {market_cap:>9} | age {age:>4} | hot {hotness:>2} | {labels}"
    )

    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, "transaction"):
            return self._format_transaction(record.transaction, record.is_new)
        if hasattr(record, "new_count"):
            count = record.new_count
            return f">>> {count} new transaction{'s' if count != 1 else ''} available"
        return super().format(record)

    def _format_transaction(self, tx: WhaleTransaction, is_new: bool) -> str:
        token = tx.token_out if tx.type == "buy" else tx.token_in
        return self.LINE_FORMAT.format(
            marker="*" if is_new else " ",
            time=tx.timestamp.strftime("%H:%M:%S") if tx.timestamp else "--:--:--",
            side=tx.type.upper(),
            symbol=token.symbol or token.address[:8] or "?",
            amount=format_currency(resolved_amount(tx)),
            market_cap=format_large_number(resolved_market_cap(tx)),
            age=tx.age or "NA",
            hotness=tx.hotness_score,
            labels=", ".join(tx.whale_labels) or "-",
        )


class FeedLogger:
    """Handles feed output to console and file."""

    def __init__(
        self,
        log_file: str | Path,
        log_level: str = "INFO",
        max_file_size_mb: int = 10,
        backup_count: int = 5,
    ):
        self.log_file = Path(log_file)
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.backup_count = backup_count

        self._logger = logging.getLogger("whale_feed.transactions")
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging handlers."""
        self._logger.setLevel(self.log_level)
        self._logger.handlers.clear()
        self._logger.propagate = False

        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(TransactionFormatter())
        self._logger.addHandler(console_handler)

        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(TransactionFormatter())
        self._logger.addHandler(file_handler)

    def _emit(self, msg: str, **extra):
        record = self._logger.makeRecord(
            name="whale_feed.transactions",
            level=logging.INFO,
            fn="",
            lno=0,
            msg=msg,
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        self._logger.handle(record)

    def log_transaction(self, tx: WhaleTransaction, is_new: bool = False):
        """Log one view-record."""
        self._emit("Transaction", transaction=tx, is_new=is_new)

    def log_banner(self, new_count: int):
        """Log the "new transactions available" banner."""
        self._emit("New transactions", new_count=new_count)

    def close(self):
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


def setup_app_logging(level: str = "INFO"):
    """Set up application-wide logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
