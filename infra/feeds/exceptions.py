"""
Feed-specific exceptions.

Data-quality problems never escape the live merge adapter; these exceptions
travel between tick sources, the decoder and the adapter loop.
"""

__all__ = ["FeedError", "MalformedTickError", "StreamDisconnect"]


class FeedError(Exception):
    """Base exception for market data feed errors."""

    def __init__(self, message: str, symbol: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.symbol = symbol

    def __str__(self) -> str:
        if self.symbol:
            return f"{type(self).__name__} ({self.symbol}): {self.message}"
        return f"{type(self).__name__}: {self.message}"


class MalformedTickError(FeedError):
    """Inbound message is missing fields or carries non-numeric values."""


class StreamDisconnect(FeedError):
    """The streaming transport failed or was closed by the server."""
