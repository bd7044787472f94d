# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and constants."""

from .api import (
    ApiModel,
    Connection,
    ConnectionMetadata,
    ConnectionsResponse,
    DelayInfo,
    ProxiesResponse,
    ProxyInfo,
    Traffic,
)
from .proxy import ROUTING_KINDS, ProxyKind
from .traffic import (
    DIRECT_OUTBOUND,
    UNAVAILABLE_DELAY,
    AggregatedTraffic,
    AggregationKey,
    LatencySnapshot,
)

__all__ = [
    "DIRECT_OUTBOUND",
    "ROUTING_KINDS",
    "UNAVAILABLE_DELAY",
    # Aggregation types
    "AggregatedTraffic",
    "AggregationKey",
    # API models
    "ApiModel",
    "Connection",
    "ConnectionMetadata",
    "ConnectionsResponse",
    "DelayInfo",
    "LatencySnapshot",
    "ProxiesResponse",
    "ProxyInfo",
    # Proxy classification
    "ProxyKind",
    "Traffic",
]
