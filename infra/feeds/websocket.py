"""
aiohttp WebSocket tick source.

Speaks the dashboard price-stream protocol: after the handshake the client
sends ``{"action": "subscribe", "symbols": [...]}`` and receives price
updates and ``market_status`` messages as JSON text frames.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from collections.abc import AsyncIterator, Sequence
from typing import Any

import aiohttp
import certifi

from .exceptions import StreamDisconnect

__all__ = ["WebSocketTickSource", "WebSocketTickStream"]


class WebSocketTickStream:
    """One open WebSocket subscription."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
        symbols: Sequence[str],
        owns_session: bool,
    ) -> None:
        self._session = session
        self._ws = ws
        self._owns_session = owns_session
        self.symbols = list(symbols)
        self.logger = logging.getLogger(self.__class__.__name__)

    async def __aiter__(self) -> AsyncIterator[str | dict[str, Any]]:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    yield msg.data
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    yield msg.data.decode("utf-8", errors="replace")
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise StreamDisconnect(f"WebSocket error: {self._ws.exception()}")
        except (aiohttp.ClientError, OSError) as e:
            raise StreamDisconnect(f"WebSocket read failed: {e}") from e
        self.logger.info(f"WebSocket closed by server (code {self._ws.close_code})")

    async def aclose(self) -> None:
        if not self._ws.closed:
            await self._ws.close()
        if self._owns_session and not self._session.closed:
            await self._session.close()


class WebSocketTickSource:
    """Opens price-stream WebSocket connections.

    Args:
        url: ``ws://`` or ``wss://`` endpoint.
        connect_timeout: Handshake timeout in seconds.
        heartbeat: Ping interval in seconds; a missed pong closes the stream.
        session: Optional shared session; otherwise one is created per
            connection and closed with it.
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = 10.0,
        heartbeat: float | None = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.url = url
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat
        self._session = session
        self.logger = logging.getLogger(self.__class__.__name__)

    def _create_session(self) -> aiohttp.ClientSession:
        # SSL context with certifi certificates
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        ssl_context.check_hostname = True
        ssl_context.verify_mode = ssl.CERT_REQUIRED

        connector = aiohttp.TCPConnector(ssl=ssl_context)
        return aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": "livechart/1.0"},
        )

    async def connect(self, symbols: Sequence[str]) -> WebSocketTickStream:
        owns_session = self._session is None
        session = self._session or self._create_session()
        try:
            async with asyncio.timeout(self.connect_timeout):
                ws = await session.ws_connect(self.url, heartbeat=self.heartbeat)
            await ws.send_str(json.dumps({"action": "subscribe", "symbols": list(symbols)}))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            if owns_session:
                await session.close()
            raise StreamDisconnect(f"Cannot connect to {self.url}: {e}") from e

        self.logger.info(f"Connected to {self.url}, subscribed to {list(symbols)}")
        return WebSocketTickStream(session, ws, symbols, owns_session)
