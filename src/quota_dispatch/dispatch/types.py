# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Type definitions for the serial dispatch queue.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

# An operation takes one credential and returns a result (or an awaitable of one)
Operation = Callable[[str], Union[Awaitable[Any], Any]]


@dataclass
class QueuedOperation:
    """
    One submitted operation waiting for (or holding) its credential.

    The future is resolved by the drain loop; a future that is already done
    when the operation reaches the head of the queue (cancelled by the caller
    or failed by clear()) is skipped.
    """

    id: str
    operation: Operation
    priority: int
    enqueued_at: float
    future: "asyncio.Future[Any]"
    started: bool = False


@dataclass
class CredentialQueue:
    """Per-credential queue and drain state."""

    # Heap of (-priority, sequence, QueuedOperation)
    heap: List[Tuple[int, int, QueuedOperation]] = field(default_factory=list)
    task: Optional["asyncio.Task[None]"] = None
    current: Optional[QueuedOperation] = None

    @property
    def draining(self) -> bool:
        return self.task is not None and not self.task.done()

    def waiting(self) -> List[QueuedOperation]:
        return [entry[2] for entry in self.heap if not entry[2].future.done()]


@dataclass
class QueueStatus:
    """Read-only snapshot of one credential's queue."""

    credential: str  # Masked
    queue_length: int
    is_processing: bool
    oldest_request_age: float  # Seconds; 0 when nothing is waiting

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential": self.credential,
            "queue_length": self.queue_length,
            "is_processing": self.is_processing,
            "oldest_request_age": round(self.oldest_request_age, 3),
        }
