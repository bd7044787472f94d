# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Dual-rate refresh scheduler.

Runs two independent background loops that keep the SnapshotCache warm:

- the fast loop refreshes the traffic rate and the connection list
  concurrently on every tick
- the slow loop lists proxies and delay-tests every concrete node
  concurrently on every tick

Both loops refresh once immediately on start, then follow a fixed-rate
ticker. A tick that fires while an activation is still running is
coalesced, so a loop never overlaps itself. A single stop event serves as
the shutdown signal for both loops and for every in-flight API call.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from typing_extensions import Self

from ..cache import SnapshotCache
from ..client import MihomoClient
from ..exceptions import RequestCancelledError, UpstreamError
from ..types.traffic import UNAVAILABLE_DELAY, LatencySnapshot
from .config import RefreshConfig, RefreshLoop

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Owns the fast and slow refresh loops.

    Failures are contained at the activation boundary: an UpstreamError
    leaves the affected snapshot untouched (stale but present) and the loop
    carries on at its next tick. There are no retries or backoff.

    Example:
        >>> cache = SnapshotCache()
        >>> async with RefreshScheduler(client, cache, RefreshConfig()) as scheduler:
        ...     await serve_forever()
    """

    def __init__(
        self,
        client: MihomoClient,
        cache: SnapshotCache,
        config: RefreshConfig | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            client: API client shared by every refresh task
            cache: Cache the loops write into
            config: Loop intervals and stop timeout
        """
        self._client = client
        self._cache = cache
        self._config = config or RefreshConfig()

        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = asyncio.Event()
        self._shutdown_lock = asyncio.Lock()
        self._tasks: dict[RefreshLoop, asyncio.Task[None]] = {}

        self._activations: defaultdict[str, int] = defaultdict(int)
        self._failures: defaultdict[str, int] = defaultdict(int)

    @property
    def config(self) -> RefreshConfig:
        return self._config

    @property
    def stop_event(self) -> asyncio.Event:
        """Shutdown signal observed by both loops and all in-flight calls."""
        return self._stop_event

    def is_running(self) -> bool:
        return self._running

    # === Lifecycle ===

    async def start(self) -> None:
        """Start both refresh loops."""
        if self._running:
            return

        self._running = True
        self._loop = asyncio.get_running_loop()
        if self._stop_event.is_set():
            self._stop_event = asyncio.Event()
        self._tasks = {
            RefreshLoop.FAST: asyncio.create_task(
                self._run_loop(RefreshLoop.FAST, self.refresh_fast),
                name="mihomo_refresh_fast",
            ),
            RefreshLoop.SLOW: asyncio.create_task(
                self._run_loop(RefreshLoop.SLOW, self.refresh_slow),
                name="mihomo_refresh_slow",
            ),
        }

        logger.info(
            f"Refresh loops started (fast every {self._config.fast_interval}s, "
            f"slow every {self._config.slow_interval}s)"
        )

    def request_stop(self) -> None:
        """
        Set the stop event without waiting for the loops to exit.

        Safe to call from a signal handler: once the loops have started the
        event is set through the event loop's thread-safe callback queue.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            self._stop_event.set()
        else:
            loop.call_soon_threadsafe(self._stop_event.set)

    async def stop(self, timeout: float | None = None) -> bool:
        """
        Signal both loops to stop and wait for them.

        In-flight API calls observe the stop event and abort. Loops that are
        still alive after ``timeout`` seconds are cancelled outright.

        Args:
            timeout: Seconds to wait; defaults to config.stop_timeout

        Returns:
            True if both loops exited on their own, False if any had to be
            force-cancelled
        """
        async with self._shutdown_lock:
            if not self._running:
                return True

            self._running = False
            self._stop_event.set()

            if timeout is None:
                timeout = self._config.stop_timeout

            tasks = list(self._tasks.values())
            self._tasks = {}
            if not tasks:
                return True

            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(
                    f"{len(pending)} refresh loop(s) did not stop within "
                    f"{timeout}s and were cancelled"
                )
                return False

            logger.info("Refresh loops stopped")
            return True

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()

    # === Activations ===

    async def refresh_fast(self) -> None:
        """Refresh traffic and connections concurrently."""
        results = await asyncio.gather(
            self._refresh_traffic(),
            self._refresh_connections(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    f"Unexpected error in fast refresh: {result!r}", exc_info=result
                )

    async def refresh_slow(self) -> None:
        """
        Delay-test every probeable proxy and swap in the new latency map.

        If the proxy list cannot be fetched the activation is skipped and
        the previous latency snapshot stays in place. Proxies that vanished
        since the last cycle simply drop out of the new map.
        """
        try:
            proxies = await self._client.get_proxies(self._stop_event)
        except RequestCancelledError:
            logger.debug("Proxy listing cancelled by shutdown")
            return
        except UpstreamError as e:
            self._failures["proxies"] += 1
            logger.warning(f"Error getting proxies: {e}")
            return

        targets = proxies.probe_targets()
        latencies: LatencySnapshot = {}

        async def probe(name: str) -> None:
            try:
                latencies[name] = await self._client.get_proxy_delay(
                    name, self._stop_event
                )
            except UpstreamError as e:
                logger.debug(f"Error getting delay for proxy {name}: {e}")
                latencies[name] = UNAVAILABLE_DELAY

        results = await asyncio.gather(
            *(probe(name) for name in targets), return_exceptions=True
        )

        if self._stop_event.is_set():
            logger.debug("Latency refresh interrupted by shutdown")
            return

        for name, result in zip(targets, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    f"Unexpected error probing proxy {name}: {result!r}",
                    exc_info=result,
                )
                latencies[name] = UNAVAILABLE_DELAY

        self._cache.set_latencies(latencies)
        logger.debug(f"Proxy latency updated for {len(latencies)} proxies")

    async def _refresh_traffic(self) -> None:
        try:
            traffic = await self._client.get_traffic(self._stop_event)
        except RequestCancelledError:
            logger.debug("Traffic refresh cancelled by shutdown")
            return
        except UpstreamError as e:
            self._failures["traffic"] += 1
            logger.warning(f"Error getting traffic: {e}")
            return
        self._cache.set_traffic(traffic)

    async def _refresh_connections(self) -> None:
        try:
            connections = await self._client.get_connections(self._stop_event)
        except RequestCancelledError:
            logger.debug("Connections refresh cancelled by shutdown")
            return
        except UpstreamError as e:
            self._failures["connections"] += 1
            logger.warning(f"Error getting connections: {e}")
            return
        self._cache.set_connections(connections)

    # === Loop machinery ===

    async def _run_loop(
        self, loop_id: RefreshLoop, activation: Callable[[], Awaitable[None]]
    ) -> None:
        """
        Run ``activation`` now and then on every tick until stopped.

        The ticker keeps a fixed phase: ticks are due at start + k * interval.
        Ticks missed while an activation ran collapse into a single
        immediate activation, matching a ticker with a one-slot buffer.
        """
        interval = self._config.interval_for(loop_id)
        event_loop = asyncio.get_running_loop()
        next_tick = event_loop.time() + interval

        await self._activate(loop_id, activation)

        while not self._stop_event.is_set():
            delay = next_tick - event_loop.time()
            if delay > 0 and await self._wait_for_stop(delay):
                break

            # Timers may fire a hair early; always move at least one tick on
            elapsed_ticks = math.floor((event_loop.time() - next_tick) / interval) + 1
            next_tick += interval * max(1, elapsed_ticks)

            if self._stop_event.is_set():
                break
            await self._activate(loop_id, activation)

        logger.debug(f"{loop_id.value} refresh loop exited")

    async def _activate(
        self, loop_id: RefreshLoop, activation: Callable[[], Awaitable[None]]
    ) -> None:
        self._activations[loop_id.value] += 1
        try:
            await activation()
        except Exception as e:
            logger.exception(f"Unexpected error in {loop_id.value} refresh: {e}")

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds; True if the stop event fired."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # === Introspection ===

    def get_metrics(self) -> dict[str, Any]:
        """Activation and failure counters, keyed by loop / snapshot family."""
        return {
            "running": self._running,
            "activations": dict(self._activations),
            "failures": dict(self._failures),
        }


__all__ = ["RefreshScheduler"]
