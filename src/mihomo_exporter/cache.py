# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot cache shared by the refresh loops and the metrics collector.

Holds the latest traffic sample, connection list and proxy latency map.
Each snapshot is replaced by reference under a lock held only for the
swap, so a reader always sees a complete (possibly stale) snapshot and
never a half-written one.
"""

import logging
import threading
import time
from dataclasses import dataclass

from .types.api import ConnectionsResponse, Traffic
from .types.traffic import LatencySnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheView:
    """
    Consistent read-only view of the three cached snapshots.

    A field is None until its first successful refresh.
    """

    traffic: Traffic | None = None
    connections: ConnectionsResponse | None = None
    latencies: LatencySnapshot | None = None


class SnapshotCache:
    """
    Store for the most recent API snapshots.

    Thread Safety:
        Writers run on the event loop while prometheus_client may collect
        from another thread, so all access goes through a threading.Lock.
        The lock only guards reference swaps and reads; fetching happens
        outside it. A reader holds it just long enough to copy three
        references, so scrapes never wait on a refresh in progress.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._traffic: Traffic | None = None
        self._connections: ConnectionsResponse | None = None
        self._latencies: LatencySnapshot | None = None
        self._updated_at: dict[str, float] = {}

    def set_traffic(self, traffic: Traffic) -> None:
        with self._lock:
            self._traffic = traffic
            self._updated_at["traffic"] = time.monotonic()

    def set_connections(self, connections: ConnectionsResponse) -> None:
        with self._lock:
            self._connections = connections
            self._updated_at["connections"] = time.monotonic()

    def set_latencies(self, latencies: LatencySnapshot) -> None:
        """Replace the latency map; the caller must not mutate it afterwards."""
        with self._lock:
            self._latencies = latencies
            self._updated_at["latencies"] = time.monotonic()

    def snapshot(self) -> CacheView:
        """Return the current snapshots as one consistent view."""
        with self._lock:
            return CacheView(
                traffic=self._traffic,
                connections=self._connections,
                latencies=self._latencies,
            )

    def age(self, family: str) -> float | None:
        """Seconds since ``family`` was last replaced, or None if never."""
        with self._lock:
            updated_at = self._updated_at.get(family)
        if updated_at is None:
            return None
        return time.monotonic() - updated_at

    def clear(self) -> None:
        """Drop every snapshot."""
        with self._lock:
            self._traffic = None
            self._connections = None
            self._latencies = None
            self._updated_at.clear()
        logger.debug("Snapshot cache cleared")


__all__ = [
    "CacheView",
    "SnapshotCache",
]
