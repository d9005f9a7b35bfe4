"""Console and file output."""

from .logger import FeedLogger, TransactionFormatter, setup_app_logging

__all__ = ["FeedLogger", "TransactionFormatter", "setup_app_logging"]
