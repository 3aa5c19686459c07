"""
Live merge adapter: streaming ticks into the time-series store.

The network task and the compute loop only share an ``asyncio.Queue``. The
network side decodes, filters stale symbols and enqueues; the compute side
calls ``drain(store)`` at its own cadence, which merges every queued tick in
arrival order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core.entities import ConnectionState, Tick
from core.series_store import MergeResult, TimeSeriesStore

from .base import TickSource, TickStream
from .decoding import MarketStatus, decode_message
from .exceptions import MalformedTickError, StreamDisconnect

__all__ = ["ReconnectPolicy", "DrainStats", "LiveMergeAdapter"]

StateListener = Callable[[ConnectionState], None]


@dataclass(frozen=True)
class ReconnectPolicy:
    """Capped exponential backoff with additive jitter.

    ``delay(n) = min(initial * 2**n, max_interval) + uniform(0, jitter)``.
    After ``max_attempts`` consecutive failures the adapter stays offline
    until ``subscribe`` is called again.
    """

    initial: float = 1.0
    max_interval: float = 30.0
    jitter: float = 1.0
    max_attempts: int = 5

    def __post_init__(self) -> None:
        if self.initial <= 0 or self.max_interval < self.initial:
            raise ValueError("Backoff needs 0 < initial <= max_interval")
        if self.jitter < 0:
            raise ValueError("jitter must be non-negative")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")

    def delay(self, attempt: int) -> float:
        base = min(self.initial * (2**attempt), self.max_interval)
        return base + random.uniform(0, self.jitter)


@dataclass(frozen=True)
class DrainStats:
    merged: int = 0
    dropped_stale: int = 0
    dropped_out_of_order: int = 0
    rejected: int = 0

    @property
    def total(self) -> int:
        return self.merged + self.dropped_stale + self.dropped_out_of_order + self.rejected


class LiveMergeAdapter:
    """One streaming subscription for the active symbol.

    States move ``connecting -> live -> offline -> connecting`` while the
    subscription is retried, and ``closed`` once it is torn down. Subscribing
    to a new symbol always tears the previous subscription down first and
    drops whatever it had queued.

    Example:
        >>> adapter = LiveMergeAdapter(WebSocketTickSource(url))
        >>> await adapter.subscribe("AAPL")
        >>> stats = adapter.drain(store)  # on the compute loop
        >>> await adapter.close()
    """

    def __init__(
        self,
        source: TickSource,
        policy: ReconnectPolicy | None = None,
        queue_maxsize: int = 10_000,
    ) -> None:
        self.source = source
        self.policy = policy or ReconnectPolicy()
        self.logger = logging.getLogger(self.__class__.__name__)

        self._queue: asyncio.Queue[Tick] = asyncio.Queue(maxsize=queue_maxsize)
        self._state = ConnectionState.CLOSED
        self._symbol: str | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[StateListener] = []
        self._ticks_ready = asyncio.Event()

        self.market_status: MarketStatus | None = None
        self.malformed_count = 0
        self.stale_count = 0
        self.overflow_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def symbol(self) -> str | None:
        return self._symbol

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return remove

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self.logger.debug(f"{self._symbol}: {self._state.value} -> {state.value}")
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def subscribe(self, symbol: str) -> None:
        """Tear down the current subscription, then open one for ``symbol``."""
        await self.unsubscribe()

        self._symbol = symbol.upper()
        self._generation += 1
        self.logger.info(f"Subscribing to {self._symbol}")
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(
            self._run(self._generation), name=f"live-merge-{self._symbol}"
        )

    async def unsubscribe(self) -> None:
        """Cancel the running subscription and discard its queued ticks."""
        task, self._task = self._task, None
        previous = self._symbol
        self._symbol = None
        self._generation += 1

        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        discarded = self._clear_queue()
        if previous is not None:
            self.logger.info(
                f"Unsubscribed from {previous} ({discarded} queued ticks discarded)"
            )
        self._set_state(ConnectionState.CLOSED)

    async def close(self) -> None:
        await self.unsubscribe()

    async def __aenter__(self) -> LiveMergeAdapter:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _clear_queue(self) -> int:
        count = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            count += 1
        self._ticks_ready.clear()
        return count

    async def _run(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        failures = 0
        while generation == self._generation and self._symbol is not None:
            symbol = self._symbol
            self._set_state(ConnectionState.CONNECTING)
            stream: TickStream | None = None
            live_since: float | None = None
            received = False
            try:
                stream = await self.source.connect([symbol])
                self._set_state(ConnectionState.LIVE)
                live_since = loop.time()
                async for raw in stream:
                    received = True
                    self._on_message(raw, generation)
                raise StreamDisconnect("Stream closed by server", symbol)
            except StreamDisconnect as e:
                self.logger.warning(f"Stream disconnected: {e}")
            except Exception:
                self.logger.exception(f"{symbol}: live stream failed")
            finally:
                if stream is not None:
                    await stream.aclose()

            # A connection only counts as healthy once it delivered data or
            # stayed up for a full backoff interval
            if received or (
                live_since is not None
                and loop.time() - live_since >= self.policy.max_interval
            ):
                failures = 0

            self._set_state(ConnectionState.OFFLINE)
            if failures >= self.policy.max_attempts:
                self.logger.error(
                    f"{symbol}: giving up after {failures} reconnect attempts"
                )
                return

            delay = self.policy.delay(failures)
            failures += 1
            self.logger.warning(
                f"{symbol}: reconnecting in {delay:.1f}s "
                f"(attempt {failures}/{self.policy.max_attempts})"
            )
            await asyncio.sleep(delay)

    def _on_message(self, raw: str | bytes | dict[str, Any], generation: int) -> None:
        try:
            message = decode_message(raw)
        except MalformedTickError as e:
            self.malformed_count += 1
            self.logger.debug(f"Dropped malformed message: {e}")
            return

        if isinstance(message, MarketStatus):
            self.market_status = message
            return

        if generation != self._generation or message.symbol != self._symbol:
            self.stale_count += 1
            return

        if self._queue.full():
            self._queue.get_nowait()
            self.overflow_count += 1
        self._queue.put_nowait(message)
        self._ticks_ready.set()

    # ------------------------------------------------------------------
    # Compute-loop side
    # ------------------------------------------------------------------

    def drain(self, store: TimeSeriesStore) -> DrainStats:
        """Merge every queued tick into ``store`` in arrival order."""
        merged = stale = out_of_order = rejected = 0

        while not self._queue.empty():
            tick = self._queue.get_nowait()
            # Symbol may have switched after the tick was queued
            if tick.symbol != self._symbol or tick.symbol != store.symbol:
                stale += 1
                continue

            result = store.merge_tick(tick.server_time, tick.price, tick.volume)
            if result.accepted:
                merged += 1
            elif result is MergeResult.DROPPED_OUT_OF_ORDER:
                out_of_order += 1
            else:
                rejected += 1

        self._ticks_ready.clear()
        self.stale_count += stale
        return DrainStats(merged, stale, out_of_order, rejected)

    async def wait_for_tick(self, timeout: float | None = None) -> bool:
        """Wait until at least one tick is queued; returns False on timeout."""
        try:
            await asyncio.wait_for(self._ticks_ready.wait(), timeout)
        except TimeoutError:
            return False
        return True
