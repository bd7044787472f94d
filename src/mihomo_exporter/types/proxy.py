# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Proxy kind classification.

mihomo reports a free-form ``type`` string for every entry under
``/proxies``. Only a handful of those matter to the exporter: the routing
constructs (groups and the built-in DIRECT/REJECT outbounds) that cannot be
delay-tested meaningfully. Everything else is a concrete outbound node.
"""

from enum import Enum


class ProxyKind(Enum):
    """
    Coarse classification of a mihomo proxy entry.

    Kinds:
        * **DIRECT / REJECT**: Built-in outbounds, nothing to measure
        * **SELECTOR / URL_TEST / FALLBACK / LOAD_BALANCE**: Proxy groups that
          route to other proxies
        * **OTHER**: Any concrete node (Shadowsocks, Vmess, Trojan, ...)
    """

    DIRECT = "Direct"
    REJECT = "Reject"
    SELECTOR = "Selector"
    URL_TEST = "URLTest"
    FALLBACK = "Fallback"
    LOAD_BALANCE = "LoadBalance"
    OTHER = "Other"

    @classmethod
    def from_type(cls, raw: str | None) -> "ProxyKind":
        """Map an upstream type string to a kind, defaulting to OTHER."""
        if not raw:
            return cls.OTHER
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER

    @property
    def is_probeable(self) -> bool:
        """Whether proxies of this kind should be delay-tested."""
        return self not in ROUTING_KINDS


# Kinds that are routing constructs rather than measurable endpoints
ROUTING_KINDS = frozenset(
    {
        ProxyKind.DIRECT,
        ProxyKind.REJECT,
        ProxyKind.SELECTOR,
        ProxyKind.URL_TEST,
        ProxyKind.FALLBACK,
        ProxyKind.LOAD_BALANCE,
    }
)


__all__ = [
    "ROUTING_KINDS",
    "ProxyKind",
]
