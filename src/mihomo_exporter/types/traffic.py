# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Aggregation and latency types.

These are the exporter's own shapes, derived from the wire models rather
than decoded from JSON.
"""

from dataclasses import dataclass
from typing import NamedTuple

# Outbound node reported for connections that did not traverse any proxy
DIRECT_OUTBOUND = "DIRECT"

# Delay recorded for a proxy whose probe failed
UNAVAILABLE_DELAY = -1

# Proxy name -> delay in milliseconds (UNAVAILABLE_DELAY when the probe failed)
LatencySnapshot = dict[str, int]


class AggregationKey(NamedTuple):
    """
    Label set that connection traffic is summed under.

    All three fields are non-empty for any key produced by the aggregator.
    """

    source_host: str
    destination: str
    outbound_node: str


@dataclass
class AggregatedTraffic:
    """Running byte totals for one aggregation key."""

    upload: int = 0
    download: int = 0

    def add(self, upload: int, download: int) -> None:
        self.upload += upload
        self.download += download


__all__ = [
    "DIRECT_OUTBOUND",
    "UNAVAILABLE_DELAY",
    "AggregatedTraffic",
    "AggregationKey",
    "LatencySnapshot",
]
