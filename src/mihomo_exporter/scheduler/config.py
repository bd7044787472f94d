# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Refresh Scheduler Configuration

This module provides the configuration for the two background refresh
loops: the fast traffic/connection loop and the slow latency loop.
"""

import math
from dataclasses import dataclass
from enum import Enum


class RefreshLoop(Enum):
    """Identifies one of the two refresh loops.

    - FAST: Traffic rate and connection list. Cheap to poll, needs
      near-real-time resolution.
    - SLOW: Per-proxy latency probes. Each probe is a network round trip
      bounded by a multi-second timeout, so it runs far less often.
    """

    FAST = "fast"
    SLOW = "slow"


@dataclass
class RefreshConfig:
    """
    Configuration for the refresh scheduler.
    """

    # === Cadence ===

    fast_interval: float = 1.0
    """Seconds between traffic/connection refreshes."""

    slow_interval: float = 60.0
    """Seconds between proxy latency refreshes."""

    # === Shutdown ===

    stop_timeout: float = 5.0
    """Seconds stop() waits for loops to exit before force-cancelling them."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("fast_interval", "slow_interval", "stop_timeout"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
        if self.fast_interval <= 0:
            raise ValueError("fast_interval must be positive")
        if self.slow_interval <= 0:
            raise ValueError("slow_interval must be positive")
        if self.stop_timeout < 0:
            raise ValueError("stop_timeout must not be negative")

    def interval_for(self, loop: RefreshLoop) -> float:
        """Tick interval of the given loop."""
        if loop is RefreshLoop.FAST:
            return self.fast_interval
        return self.slow_interval


__all__ = [
    "RefreshConfig",
    "RefreshLoop",
]
