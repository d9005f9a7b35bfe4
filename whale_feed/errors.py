"""Exceptions raised by Whale Feed."""


class WhaleFeedError(Exception):
    """Base class for all Whale Feed errors."""


class TransactionApiError(WhaleFeedError):
    """The transaction query service failed or answered with a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransactionParseError(WhaleFeedError):
    """A transaction payload could not be turned into a WhaleTransaction."""


class InvalidFilterError(WhaleFeedError, ValueError):
    """A filter value was rejected before it reached the evaluator."""
