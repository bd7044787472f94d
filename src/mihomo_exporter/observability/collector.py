# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Prometheus collector for cached mihomo snapshots.

MihomoCollector is a prometheus_client custom collector: on every scrape it
takes one consistent view of the SnapshotCache, aggregates the connection
list and yields gauge families. It never talks to mihomo itself, so a
scrape costs one lock acquisition plus the aggregation pass.

Usage:
    >>> from prometheus_client import CollectorRegistry, generate_latest
    >>> registry = CollectorRegistry()
    >>> registry.register(MihomoCollector(cache, prefix="mihomo"))
    >>> body = generate_latest(registry)

Absent snapshots (nothing fetched yet) simply produce no samples for their
families.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from ..aggregator import aggregate_connections
from ..cache import CacheView, SnapshotCache
from ..exceptions import ConfigurationError
from .constants import (
    CONNECTION_DOWNLOAD_BYTES,
    CONNECTION_LABELS,
    CONNECTION_UPLOAD_BYTES,
    CONNECTIONS_ACTIVE_TOTAL,
    DEFAULT_METRIC_PREFIX,
    METRIC_PREFIX_PATTERN,
    PROXY_AVAILABLE,
    PROXY_LABELS,
    PROXY_LATENCY_MS,
    TRAFFIC_DOWNLOAD_SPEED_BYTES,
    TRAFFIC_UPLOAD_SPEED_BYTES,
    build_metric_name,
)

logger = logging.getLogger(__name__)


def is_available(delay: int) -> bool:
    """A proxy counts as available only with a strictly positive delay."""
    return delay > 0


class MihomoCollector(Collector):
    """
    Translates cached snapshots into Prometheus gauge families.

    Thread Safety:
        collect() may run on any thread; it only reads a CacheView taken
        under the cache lock and keeps no state of its own.
    """

    def __init__(self, cache: SnapshotCache, prefix: str = DEFAULT_METRIC_PREFIX):
        """
        Initialize the collector.

        Args:
            cache: Snapshot cache populated by the refresh scheduler
            prefix: Metric name prefix; empty for bare names

        Raises:
            ConfigurationError: If prefix is not a valid metric name
        """
        if prefix and not METRIC_PREFIX_PATTERN.match(prefix):
            raise ConfigurationError(f"Invalid metric prefix: {prefix!r}")

        self._cache = cache
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def _name(self, suffix: str) -> str:
        return build_metric_name(self._prefix, suffix)

    def describe(self) -> list[Metric]:
        # Returning nothing keeps registration from triggering a collect()
        return []

    def collect(self) -> Iterator[Metric]:
        view = self._cache.snapshot()
        yield from self._collect_traffic(view)
        yield from self._collect_connections(view)
        yield from self._collect_latencies(view)

    def _collect_traffic(self, view: CacheView) -> Iterator[Metric]:
        if view.traffic is None:
            return

        yield GaugeMetricFamily(
            self._name(TRAFFIC_UPLOAD_SPEED_BYTES),
            "Current upload speed in bytes per second.",
            value=float(view.traffic.up),
        )
        yield GaugeMetricFamily(
            self._name(TRAFFIC_DOWNLOAD_SPEED_BYTES),
            "Current download speed in bytes per second.",
            value=float(view.traffic.down),
        )

    def _collect_connections(self, view: CacheView) -> Iterator[Metric]:
        if view.connections is None:
            return

        connections = view.connections.connections
        yield GaugeMetricFamily(
            self._name(CONNECTIONS_ACTIVE_TOTAL),
            "Total number of active connections.",
            value=float(len(connections)),
        )

        upload = GaugeMetricFamily(
            self._name(CONNECTION_UPLOAD_BYTES),
            "Uploaded bytes for a specific active connection.",
            labels=CONNECTION_LABELS,
        )
        download = GaugeMetricFamily(
            self._name(CONNECTION_DOWNLOAD_BYTES),
            "Downloaded bytes for a specific active connection.",
            labels=CONNECTION_LABELS,
        )
        for key, traffic in aggregate_connections(connections).items():
            upload.add_metric(list(key), float(traffic.upload))
            download.add_metric(list(key), float(traffic.download))

        yield upload
        yield download

    def _collect_latencies(self, view: CacheView) -> Iterator[Metric]:
        if view.latencies is None:
            return

        latency = GaugeMetricFamily(
            self._name(PROXY_LATENCY_MS),
            "Latency of a specific proxy in milliseconds.",
            labels=PROXY_LABELS,
        )
        available = GaugeMetricFamily(
            self._name(PROXY_AVAILABLE),
            "Availability of a specific proxy (1 for available, 0 for unavailable).",
            labels=PROXY_LABELS,
        )
        for name, delay in view.latencies.items():
            latency.add_metric([name], float(delay))
            available.add_metric([name], 1.0 if is_available(delay) else 0.0)

        yield latency
        yield available


__all__ = [
    "MihomoCollector",
    "is_available",
]
