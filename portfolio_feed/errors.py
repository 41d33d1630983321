"""Exception types raised by the portfolio feed.

None of these are fatal to the daemon: callers log them and degrade to a
"no data" state until the next successful event.
"""

from __future__ import annotations


class PortfolioFeedError(Exception):
    """Base class for all portfolio feed errors."""


class MalformedSample(PortfolioFeedError):
    """A live or historical sample is missing fields or has invalid values."""


class StaleSample(PortfolioFeedError):
    """A sample is older than what a horizon already holds.

    Raised and caught inside the aggregator; never reaches callers.
    """


class ApiError(PortfolioFeedError):
    """An upstream API request failed (transport, status or decoding)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BootstrapFailure(PortfolioFeedError):
    """Bulk history for a horizon could not be fetched or parsed."""

    def __init__(self, horizon: str, message: str) -> None:
        super().__init__(f"{horizon}: {message}")
        self.horizon = horizon
