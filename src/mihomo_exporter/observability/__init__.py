# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Prometheus exposition for the mihomo exporter.

Classes:
    MihomoCollector: Custom collector that renders cached snapshots as gauges.

Constants:
    Metric name suffixes and label names from the constants module.
"""

from .collector import MihomoCollector, is_available
from .constants import (
    CONNECTION_DOWNLOAD_BYTES,
    CONNECTION_LABELS,
    CONNECTION_UPLOAD_BYTES,
    CONNECTIONS_ACTIVE_TOTAL,
    DEFAULT_METRIC_PREFIX,
    PROXY_AVAILABLE,
    PROXY_LABELS,
    PROXY_LATENCY_MS,
    TRAFFIC_DOWNLOAD_SPEED_BYTES,
    TRAFFIC_UPLOAD_SPEED_BYTES,
    build_metric_name,
)

__all__ = [
    "CONNECTIONS_ACTIVE_TOTAL",
    "CONNECTION_DOWNLOAD_BYTES",
    "CONNECTION_LABELS",
    "CONNECTION_UPLOAD_BYTES",
    "DEFAULT_METRIC_PREFIX",
    "PROXY_AVAILABLE",
    "PROXY_LABELS",
    "PROXY_LATENCY_MS",
    "TRAFFIC_DOWNLOAD_SPEED_BYTES",
    "TRAFFIC_UPLOAD_SPEED_BYTES",
    "MihomoCollector",
    "build_metric_name",
    "is_available",
]
