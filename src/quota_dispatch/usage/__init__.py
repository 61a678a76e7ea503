# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Rolling-window usage tracking per credential."""

from .tracker import UsageStats, UsageTracker

__all__ = [
    "UsageStats",
    "UsageTracker",
]
