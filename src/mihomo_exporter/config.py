# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Exporter configuration.

Settings come from command line flags. Every flag can also be supplied
through an environment variable derived from its name: leading dashes
dropped, upper-cased, with ``.`` and ``-`` turned into ``_``
(``--mihomo.api-url`` -> ``MIHOMO_API_URL``). Flags win over the
environment.
"""

import argparse
import logging
import math
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from . import __version__
from .exceptions import ConfigurationError
from .observability.constants import DEFAULT_METRIC_PREFIX, METRIC_PREFIX_PATTERN
from .scheduler.config import RefreshConfig

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_duration(value: str) -> float:
    """
    Parse a duration into seconds.

    Accepts Go-style durations (``500ms``, ``1s``, ``1m30s``, ``2h``) as
    well as a bare number of seconds (``1.5``).

    Raises:
        ConfigurationError: If the value is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ConfigurationError("Empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ConfigurationError(f"Duration must be finite: {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text) or position == 0:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if not math.isfinite(total):
        raise ConfigurationError(f"Duration must be finite: {value!r}")
    return total


def parse_listen_address(value: str) -> tuple[str, int]:
    """
    Split ``host:port`` into its parts.

    An empty host (``:9188``) binds every interface. IPv6 hosts must be
    bracketed (``[::1]:9188``).

    Raises:
        ConfigurationError: If the address or port is malformed
    """
    host, sep, port_text = value.rpartition(":")
    if not sep:
        raise ConfigurationError(f"Listen address {value!r} must be host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigurationError(
            f"Listen address {value!r}: IPv6 hosts must be written as [addr]:port"
        )

    try:
        port = int(port_text)
    except ValueError:
        raise ConfigurationError(f"Invalid port in listen address {value!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigurationError(f"Port out of range in listen address {value!r}")

    return host or "0.0.0.0", port  # noqa: S104  # nosec B104


def env_var_for(flag: str) -> str:
    """Environment variable name that backs ``flag``."""
    return re.sub(r"[.\-]", "_", flag.lstrip("-")).upper()


@dataclass
class ExporterConfig:
    """
    Complete runtime configuration for the exporter.
    """

    # === Web ===

    listen_address: str = ":9188"
    """Address to listen on for the web interface and telemetry."""

    telemetry_path: str = "/metrics"
    """Path under which metrics are exposed."""

    # === Upstream ===

    api_url: str = "http://127.0.0.1:9097"
    """mihomo external-controller base URL."""

    api_token: str = ""
    """mihomo API secret, if any."""

    # === Refresh cadence ===

    scrape_interval: float = 1.0
    """Seconds between traffic/connection refreshes."""

    latency_interval: float = 60.0
    """Seconds between proxy latency refreshes."""

    # === Exposition ===

    metric_prefix: str = DEFAULT_METRIC_PREFIX
    """Prefix for all exported metrics."""

    # === Lifecycle ===

    shutdown_timeout: float = 5.0
    """Grace period for the HTTP server and refresh loops on shutdown."""

    log_level: str = "INFO"
    """Root log level."""

    # Derived from listen_address
    host: str = field(init=False, default="")
    port: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.host, self.port = parse_listen_address(self.listen_address)

        if not self.telemetry_path.startswith("/") or self.telemetry_path == "/":
            raise ConfigurationError(
                f"telemetry_path must be an absolute path other than '/': "
                f"{self.telemetry_path!r}"
            )
        for name in ("scrape_interval", "latency_interval", "shutdown_timeout"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigurationError(f"{name} must be finite")
        if self.scrape_interval <= 0:
            raise ConfigurationError("scrape_interval must be positive")
        if self.latency_interval <= 0:
            raise ConfigurationError("latency_interval must be positive")
        if self.shutdown_timeout < 0:
            raise ConfigurationError("shutdown_timeout must not be negative")
        if self.metric_prefix and not METRIC_PREFIX_PATTERN.match(self.metric_prefix):
            raise ConfigurationError(f"Invalid metric prefix: {self.metric_prefix!r}")

        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}: {self.log_level!r}"
            )

    def refresh_config(self) -> RefreshConfig:
        """Scheduler settings derived from this configuration."""
        return RefreshConfig(
            fast_interval=self.scrape_interval,
            slow_interval=self.latency_interval,
            stop_timeout=self.shutdown_timeout,
        )


def build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    """Build the argument parser with defaults taken from ``environ``."""
    parser = argparse.ArgumentParser(
        prog="mihomo-exporter",
        description="Prometheus exporter for the mihomo proxy daemon.",
    )
    defaults = ExporterConfig.__dataclass_fields__

    def add(flag: str, dest: str, help_text: str, secret: bool = False) -> None:
        env = env_var_for(flag)
        default = environ.get(env, defaults[dest].default)
        shown = "" if secret else " (default: %(default)s)"
        parser.add_argument(
            flag,
            dest=dest,
            default=default,
            help=f"{help_text} [env: {env}]{shown}",
        )

    add(
        "--web.listen-address",
        "listen_address",
        "Address to listen on for web interface and telemetry.",
    )
    add("--web.telemetry-path", "telemetry_path", "Path under which to expose metrics.")
    add("--mihomo.api-url", "api_url", "Mihomo API base URL.")
    add(
        "--mihomo.api-token",
        "api_token",
        "Mihomo API secret token (if any).",
        secret=True,
    )
    add(
        "--scrape.interval",
        "scrape_interval",
        "Interval at which to scrape Mihomo API.",
    )
    add(
        "--latency.interval",
        "latency_interval",
        "Interval at which to test proxy latency.",
    )
    add("--metric.prefix", "metric_prefix", "Prefix for all exported metrics.")
    add("--shutdown.timeout", "shutdown_timeout", "Graceful shutdown timeout.")
    add("--log.level", "log_level", "Log level.")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def parse_args(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ExporterConfig:
    """
    Build an ExporterConfig from flags and environment variables.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigurationError: If any value is invalid
    """
    if environ is None:
        environ = os.environ

    args = build_parser(environ).parse_args(argv)

    def duration(value: object) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        return parse_duration(str(value))

    return ExporterConfig(
        listen_address=str(args.listen_address),
        telemetry_path=str(args.telemetry_path),
        api_url=str(args.api_url),
        api_token=str(args.api_token),
        scrape_interval=duration(args.scrape_interval),
        latency_interval=duration(args.latency_interval),
        metric_prefix=str(args.metric_prefix),
        shutdown_timeout=duration(args.shutdown_timeout),
        log_level=str(args.log_level),
    )


__all__ = [
    "ExporterConfig",
    "build_parser",
    "env_var_for",
    "parse_args",
    "parse_duration",
    "parse_listen_address",
]
