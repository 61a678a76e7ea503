# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Serial dispatch package.

One queue per credential; operations on the same credential never overlap.
"""

from .types import CredentialQueue, Operation, QueuedOperation, QueueStatus
from .serial_queue import SerialDispatchQueue

__all__ = [
    "CredentialQueue",
    "Operation",
    "QueuedOperation",
    "QueueStatus",
    "SerialDispatchQueue",
]
