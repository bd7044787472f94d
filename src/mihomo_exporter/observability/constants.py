# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

Names here are suffixes; the exporter joins them to a configurable prefix
(``mihomo`` by default), e.g. ``mihomo_proxy_latency_ms``.

Label Cardinality:
    Connection series are labelled by source host, destination and outbound
    node, never by connection id, so the series count tracks distinct
    (client, site, proxy) triples rather than individual connections.
"""

import re

DEFAULT_METRIC_PREFIX = "mihomo"
"""Default prefix for all exported metrics."""

METRIC_PREFIX_PATTERN = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
"""Prefixes must themselves be valid Prometheus metric names."""


# =============================================================================
# Traffic Metrics
# =============================================================================

TRAFFIC_UPLOAD_SPEED_BYTES = "traffic_upload_speed_bytes"
"""Current upload speed in bytes per second."""

TRAFFIC_DOWNLOAD_SPEED_BYTES = "traffic_download_speed_bytes"
"""Current download speed in bytes per second."""


# =============================================================================
# Connection Metrics
# =============================================================================

CONNECTIONS_ACTIVE_TOTAL = "connections_active_total"
"""Total number of active connections."""

CONNECTION_UPLOAD_BYTES = "connection_upload_bytes"
"""Uploaded bytes summed per (source_host, destination, outbound_node)."""

CONNECTION_DOWNLOAD_BYTES = "connection_download_bytes"
"""Downloaded bytes summed per (source_host, destination, outbound_node)."""


# =============================================================================
# Proxy Metrics
# =============================================================================

PROXY_LATENCY_MS = "proxy_latency_ms"
"""Latency of a specific proxy in milliseconds (-1 when the probe failed)."""

PROXY_AVAILABLE = "proxy_available"
"""Availability of a specific proxy (1 for available, 0 for unavailable)."""


# =============================================================================
# Labels
# =============================================================================

CONNECTION_LABELS = ("source_host", "destination", "outbound_node")
PROXY_LABELS = ("proxy_name",)


def build_metric_name(prefix: str, suffix: str) -> str:
    """Join prefix and suffix the way prometheus BuildFQName does."""
    if not prefix:
        return suffix
    return f"{prefix}_{suffix}"


__all__ = [
    "CONNECTIONS_ACTIVE_TOTAL",
    "CONNECTION_DOWNLOAD_BYTES",
    "CONNECTION_LABELS",
    "CONNECTION_UPLOAD_BYTES",
    "DEFAULT_METRIC_PREFIX",
    "METRIC_PREFIX_PATTERN",
    "PROXY_AVAILABLE",
    "PROXY_LABELS",
    "PROXY_LATENCY_MS",
    "TRAFFIC_DOWNLOAD_SPEED_BYTES",
    "TRAFFIC_UPLOAD_SPEED_BYTES",
    "build_metric_name",
]
