# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client package for credential rotation and dispatch.

Public API:
    RotatingClient: Composition root; builds and owns every component

Components (for advanced usage):
    RetryOrchestrator: Retry/failover state machine
"""

from .rotating_client import RotatingClient
from .orchestrator import RetryOrchestrator, StatusCallback
from .types import AvailabilityStats, DispatchAttempt

__all__ = [
    # Main public API
    "RotatingClient",
    # Components
    "RetryOrchestrator",
    "StatusCallback",
    # Types
    "AvailabilityStats",
    "DispatchAttempt",
]
