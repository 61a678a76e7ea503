# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client-specific type definitions.

Types that are only used within the client package.
Shared types are in core/types.py.
"""

from dataclasses import dataclass, field
from typing import Optional, Set

from ..error_handler import ClassifiedError


@dataclass
class AvailabilityStats:
    """
    Statistics about credential availability.

    Used for logging and monitoring credential pool status.
    """

    available: int  # Credentials usable right now
    quota_limited: int  # Credentials waiting for a quota reset
    failed: int  # Credentials marked failed
    total: int  # Total credentials in the pool

    @property
    def usable(self) -> int:
        """Return count of usable credentials."""
        return self.available

    def __str__(self) -> str:
        parts = [f"{self.available}/{self.total}"]
        if self.quota_limited > 0:
            parts.append(f"quota:{self.quota_limited}")
        if self.failed > 0:
            parts.append(f"failed:{self.failed}")
        return ",".join(parts)


@dataclass
class DispatchAttempt:
    """
    State of one orchestrated call.

    Exists only for the duration of RetryOrchestrator.run().
    """

    max_attempts: int
    max_attempts_per_credential: int
    current: Optional[str] = None
    attempt: int = 0  # Upstream calls made so far, across credentials
    credential_retries: int = 0  # Transient retries on the current credential
    last_error: Optional[ClassifiedError] = None
    last_credential: Optional[str] = None
    excluded: Set[str] = field(default_factory=set)

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.attempt

    @property
    def needs_credential(self) -> bool:
        """True when a (new) credential must be selected before the next call."""
        return (
            self.current is None
            or self.credential_retries >= self.max_attempts_per_credential
        )

    def select(self, credential: str) -> None:
        """Switch to a newly selected credential."""
        self.current = credential
        self.credential_retries = 0

    def abandon(self) -> None:
        """Drop the current credential; it is not re-selected in this call."""
        if self.current is not None:
            self.excluded.add(self.current)
        self.current = None

    def release(self) -> None:
        """Drop the current credential without excluding it."""
        self.current = None

    def record_failure(self, credential: str, error: ClassifiedError) -> None:
        self.last_error = error
        self.last_credential = credential
