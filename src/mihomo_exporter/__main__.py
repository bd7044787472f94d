# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Allow ``python -m mihomo_exporter``."""

from .main import run

run()
