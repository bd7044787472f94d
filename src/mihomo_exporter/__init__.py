# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Mihomo Exporter - Prometheus metrics for the mihomo proxy daemon.

Polls mihomo's REST management API on two independent cadences, caches the
results and serves them as Prometheus metrics on every scrape.

Key Features:
    - Fast loop: traffic rate and active connections (default every 1s)
    - Slow loop: per-proxy delay tests (default every 60s)
    - Connection traffic aggregated per (source host, destination, outbound node)
    - Stale-but-present data on upstream failures, never an empty scrape
    - Graceful shutdown that aborts in-flight API calls

Quick Start:
    >>> from prometheus_client import CollectorRegistry
    >>> from mihomo_exporter import (
    ...     MihomoClient, MihomoCollector, RefreshScheduler, SnapshotCache,
    ... )
    >>>
    >>> client = MihomoClient("http://127.0.0.1:9097", token="s3cret")
    >>> cache = SnapshotCache()
    >>> registry = CollectorRegistry()
    >>> registry.register(MihomoCollector(cache, prefix="mihomo"))
    >>> async with RefreshScheduler(client, cache):
    ...     ...  # serve generate_latest(registry) on /metrics

Command line:
    mihomo-exporter --mihomo.api-url http://127.0.0.1:9097 --web.listen-address :9188

Version: 1.0.0
"""

__version__ = "1.0.0"

from .aggregator import aggregate_connections, resolve_key
from .cache import CacheView, SnapshotCache
from .client import MihomoClient
from .exceptions import (
    ConfigurationError,
    ExporterError,
    RequestCancelledError,
    UpstreamError,
)
from .observability import MihomoCollector
from .scheduler import RefreshConfig, RefreshLoop, RefreshScheduler
from .types import (
    DIRECT_OUTBOUND,
    UNAVAILABLE_DELAY,
    AggregatedTraffic,
    AggregationKey,
    Connection,
    ConnectionMetadata,
    ConnectionsResponse,
    LatencySnapshot,
    ProxiesResponse,
    ProxyInfo,
    ProxyKind,
    Traffic,
)

__all__ = [
    "DIRECT_OUTBOUND",
    "UNAVAILABLE_DELAY",
    # Aggregation
    "AggregatedTraffic",
    "AggregationKey",
    # Cache
    "CacheView",
    # Exceptions
    "ConfigurationError",
    # API models
    "Connection",
    "ConnectionMetadata",
    "ConnectionsResponse",
    "ExporterError",
    "LatencySnapshot",
    # Client
    "MihomoClient",
    # Exposition
    "MihomoCollector",
    "ProxiesResponse",
    "ProxyInfo",
    "ProxyKind",
    # Scheduler
    "RefreshConfig",
    "RefreshLoop",
    "RefreshScheduler",
    "RequestCancelledError",
    "SnapshotCache",
    "Traffic",
    "UpstreamError",
    "aggregate_connections",
    "resolve_key",
]
