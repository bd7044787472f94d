# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Wire models for the mihomo REST API.

Each model mirrors one JSON payload returned by the daemon. Models are
frozen once decoded; refresh loops replace them wholesale instead of
mutating them in place. Unknown fields are ignored and JSON ``null`` is
accepted wherever mihomo is known to emit it (empty chains, missing
metadata strings).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .proxy import ProxyKind


class ApiModel(BaseModel):
    """Base for all API payload models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )


class Traffic(ApiModel):
    """One sample from the ``/traffic`` stream, in bytes per second."""

    up: int = 0
    down: int = 0

    @field_validator("up", "down", mode="before")
    @classmethod
    def null_rate_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class ConnectionMetadata(ApiModel):
    """Addressing and routing metadata attached to a connection."""

    network: str = ""
    type: str = ""
    source_ip: str = Field(default="", alias="sourceIP")
    destination_ip: str = Field(default="", alias="destinationIP")
    source_port: str = Field(default="", alias="sourcePort")
    destination_port: str = Field(default="", alias="destinationPort")
    host: str = ""
    dns_mode: str = Field(default="", alias="dnsMode")
    process_path: str = Field(default="", alias="processPath")

    @field_validator("*", mode="before")
    @classmethod
    def null_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class Connection(ApiModel):
    """A single active connection as reported by ``/connections``."""

    id: str = ""
    metadata: ConnectionMetadata = Field(default_factory=ConnectionMetadata)
    upload: int = 0
    download: int = 0
    start: str = ""
    chains: tuple[str, ...] = ()
    rule: str = ""
    rule_payload: str = Field(default="", alias="rulePayload")

    @field_validator("id", "start", "rule", "rule_payload", mode="before")
    @classmethod
    def null_string_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("upload", "download", mode="before")
    @classmethod
    def null_bytes_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def null_metadata_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("chains", mode="before")
    @classmethod
    def null_chain_is_empty(cls, value: Any) -> Any:
        return () if value is None else value


class ConnectionsResponse(ApiModel):
    """Full ``/connections`` payload: running totals plus active connections."""

    download_total: int = Field(default=0, alias="downloadTotal")
    upload_total: int = Field(default=0, alias="uploadTotal")
    connections: tuple[Connection, ...] = ()

    @field_validator("download_total", "upload_total", mode="before")
    @classmethod
    def null_total_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("connections", mode="before")
    @classmethod
    def null_list_is_empty(cls, value: Any) -> Any:
        return () if value is None else value


class ProxyInfo(ApiModel):
    """
    One entry of the ``/proxies`` mapping.

    ``now`` and ``all`` are only populated for group proxies (selectors and
    friends) and are carried for completeness.
    """

    name: str = ""
    type: str = ""
    now: str = ""
    all: tuple[str, ...] = ()

    @field_validator("name", "type", "now", mode="before")
    @classmethod
    def null_string_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("all", mode="before")
    @classmethod
    def null_members_is_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def kind(self) -> ProxyKind:
        """Classified proxy kind derived from the raw ``type`` string."""
        return ProxyKind.from_type(self.type)


class ProxiesResponse(ApiModel):
    """Full ``/proxies`` payload keyed by proxy name."""

    proxies: dict[str, ProxyInfo] = Field(default_factory=dict)

    @field_validator("proxies", mode="before")
    @classmethod
    def null_mapping_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def probe_targets(self) -> list[str]:
        """Names of proxies that are concrete nodes worth delay-testing."""
        return [name for name, info in self.proxies.items() if info.kind.is_probeable]


class DelayInfo(ApiModel):
    """Result of ``/proxies/{name}/delay``."""

    delay: int


__all__ = [
    "ApiModel",
    "Connection",
    "ConnectionMetadata",
    "ConnectionsResponse",
    "DelayInfo",
    "ProxiesResponse",
    "ProxyInfo",
    "Traffic",
]
