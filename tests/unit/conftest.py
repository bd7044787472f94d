# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the mihomo exporter unit tests.

Payload builders mirror the JSON mihomo actually returns so that models,
client and collector tests all exercise the same shapes.
"""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from mihomo_exporter.cache import SnapshotCache
from mihomo_exporter.types.api import Connection, ConnectionsResponse

# ============================================================================
# Payload builders
# ============================================================================


def connection_payload(
    conn_id: str = "c-1",
    source_ip: str = "10.0.0.1",
    host: str = "a.com",
    destination_ip: str = "93.184.216.34",
    chains: list[str] | None = None,
    upload: int = 0,
    download: int = 0,
) -> dict[str, Any]:
    """JSON dict for one entry of /connections."""
    return {
        "id": conn_id,
        "metadata": {
            "network": "tcp",
            "type": "HTTPS",
            "sourceIP": source_ip,
            "destinationIP": destination_ip,
            "sourcePort": "51234",
            "destinationPort": "443",
            "host": host,
            "dnsMode": "normal",
            "processPath": "",
        },
        "upload": upload,
        "download": download,
        "start": "2026-10-17T10:00:00.000000000+08:00",
        "chains": ["P1"] if chains is None else chains,
        "rule": "Match",
        "rulePayload": "",
    }


def make_connection(**kwargs: Any) -> Connection:
    return Connection.model_validate(connection_payload(**kwargs))


def connections_payload(*connections: dict[str, Any]) -> dict[str, Any]:
    return {
        "downloadTotal": sum(c["download"] for c in connections),
        "uploadTotal": sum(c["upload"] for c in connections),
        "connections": list(connections),
    }


def make_connections(*connections: dict[str, Any]) -> ConnectionsResponse:
    return ConnectionsResponse.model_validate(connections_payload(*connections))


PROXIES_PAYLOAD: dict[str, Any] = {
    "proxies": {
        "DIRECT": {"name": "DIRECT", "type": "Direct"},
        "REJECT": {"name": "REJECT", "type": "Reject"},
        "GLOBAL": {
            "name": "GLOBAL",
            "type": "Selector",
            "now": "HK-01",
            "all": ["HK-01", "JP-01"],
        },
        "Auto": {
            "name": "Auto",
            "type": "URLTest",
            "now": "HK-01",
            "all": ["HK-01", "JP-01"],
        },
        "Backup": {"name": "Backup", "type": "Fallback", "all": ["HK-01"]},
        "Balance": {"name": "Balance", "type": "LoadBalance", "all": ["JP-01"]},
        "HK-01": {"name": "HK-01", "type": "Shadowsocks"},
        "JP-01": {"name": "JP-01", "type": "Trojan"},
    }
}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cache():
    """Empty snapshot cache."""
    return SnapshotCache()


@pytest.fixture
def mock_client():
    """MihomoClient stand-in with every read operation as an AsyncMock."""
    client = Mock()
    client.get_traffic = AsyncMock()
    client.get_connections = AsyncMock()
    client.get_proxies = AsyncMock()
    client.get_proxy_delay = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def conn_payload():
    """Factory for /connections entries as raw JSON dicts."""
    return connection_payload


@pytest.fixture
def conn():
    """Factory for decoded Connection records."""
    return make_connection


@pytest.fixture
def conns_payload():
    """Factory for a full /connections body from entry dicts."""
    return connections_payload


@pytest.fixture
def conns():
    """Factory for a decoded ConnectionsResponse from entry dicts."""
    return make_connections


@pytest.fixture
def proxies_payload():
    """A /proxies body with every group kind plus two concrete nodes."""
    return copy.deepcopy(PROXIES_PAYLOAD)
