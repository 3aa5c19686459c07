"""Market data feeds: historical providers and live tick streams."""

from .base import HistoricalProvider, TickSource, TickStream
from .decoding import MarketStatus, PriceUpdate, decode_message, parse_server_time
from .exceptions import FeedError, MalformedTickError, StreamDisconnect
from .live_merge import DrainStats, LiveMergeAdapter, ReconnectPolicy
from .websocket import WebSocketTickSource, WebSocketTickStream

__all__ = [
    "DrainStats",
    "FeedError",
    "HistoricalProvider",
    "LiveMergeAdapter",
    "MalformedTickError",
    "MarketStatus",
    "PriceUpdate",
    "ReconnectPolicy",
    "StreamDisconnect",
    "TickSource",
    "TickStream",
    "WebSocketTickSource",
    "WebSocketTickStream",
    "decode_message",
    "parse_server_time",
]
