# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Connection aggregation.

Reduces mihomo's per-connection records to byte totals keyed by
(source host, destination, outbound node). Runs at scrape time over the
cached connection snapshot; it is a pure function of its input.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

from .types.api import Connection
from .types.traffic import DIRECT_OUTBOUND, AggregatedTraffic, AggregationKey

logger = logging.getLogger(__name__)


def resolve_key(conn: Connection) -> AggregationKey | None:
    """
    Derive the aggregation key for a single connection.

    - outbound node: last proxy in the chain, or DIRECT for an empty chain
    - destination: the sniffed/requested host, else the destination IP
    - source host: the source IP as reported

    Returns:
        The key, or None if any of the three labels resolved to empty
    """
    outbound_node = conn.chains[-1] if conn.chains else DIRECT_OUTBOUND
    destination = conn.metadata.host or conn.metadata.destination_ip
    source_host = conn.metadata.source_ip

    if not (source_host and destination and outbound_node):
        return None
    return AggregationKey(source_host, destination, outbound_node)


def aggregate_connections(
    connections: Iterable[Connection],
) -> dict[AggregationKey, AggregatedTraffic]:
    """
    Sum upload/download bytes per aggregation key.

    Connections whose labels cannot be resolved are skipped with a warning;
    one bad record never suppresses the rest.
    """
    totals: defaultdict[AggregationKey, AggregatedTraffic] = defaultdict(
        AggregatedTraffic
    )

    for conn in connections:
        key = resolve_key(conn)
        if key is None:
            outbound = conn.chains[-1] if conn.chains else DIRECT_OUTBOUND
            logger.warning(
                f"Skipping connection with empty labels. ID: {conn.id}, "
                f"Source: '{conn.metadata.source_ip}', "
                f"Destination: '{conn.metadata.host or conn.metadata.destination_ip}', "
                f"Node: '{outbound}'"
            )
            continue
        totals[key].add(conn.upload, conn.download)

    return dict(totals)


__all__ = [
    "aggregate_connections",
    "resolve_key",
]
