# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Background refresh scheduling."""

from .config import RefreshConfig, RefreshLoop
from .refresher import RefreshScheduler

__all__ = [
    "RefreshConfig",
    "RefreshLoop",
    "RefreshScheduler",
]
