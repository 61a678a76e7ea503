# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Type definitions for the credential pool.

This module contains the credential record, its lifecycle states,
the outcomes reported by the orchestrator, and the read-only status
snapshot exposed to diagnostics.
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..error_handler import mask_credential


# =============================================================================
# ENUMS
# =============================================================================


class CredentialState(str, Enum):
    """Lifecycle state of a credential."""

    AVAILABLE = "available"
    FAILED = "failed"  # Auth failure, until manual or mass reset
    QUOTA_LIMITED = "quota_limited"  # Until quota_expires_at


class OutcomeKind(str, Enum):
    """Outcome of one upstream call, as reported to the pool."""

    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT_FAILURE = "transient_failure"


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass(frozen=True)
class Outcome:
    """
    Outcome reported to CredentialPool.report().

    retry_after is only meaningful for QUOTA_EXCEEDED.
    """

    kind: OutcomeKind
    retry_after: Optional[float] = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(kind=OutcomeKind.SUCCESS)

    @classmethod
    def auth_failure(cls) -> "Outcome":
        return cls(kind=OutcomeKind.AUTH_FAILURE)

    @classmethod
    def quota_exceeded(cls, retry_after: Optional[float] = None) -> "Outcome":
        return cls(kind=OutcomeKind.QUOTA_EXCEEDED, retry_after=retry_after)

    @classmethod
    def transient_failure(cls) -> "Outcome":
        return cls(kind=OutcomeKind.TRANSIENT_FAILURE)


# =============================================================================
# CREDENTIAL RECORD
# =============================================================================


def stable_id_for(secret: str) -> str:
    """SHA-256 of the secret, truncated for readability."""
    return hashlib.sha256(secret.encode()).hexdigest()[:12]


@dataclass
class Credential:
    """
    One credential and its lifecycle state.

    A credential is never FAILED and QUOTA_LIMITED at the same time:
    quota_expires_at is only set while QUOTA_LIMITED.
    """

    secret: str
    stable_id: str
    is_priority: bool = False
    state: CredentialState = CredentialState.AVAILABLE
    quota_expires_at: Optional[float] = None
    last_failure_at: Optional[float] = None

    @classmethod
    def from_secret(cls, secret: str, is_priority: bool = False) -> "Credential":
        return cls(secret=secret, stable_id=stable_id_for(secret), is_priority=is_priority)

    @property
    def masked(self) -> str:
        return mask_credential(self.secret)

    def mark_available(self) -> None:
        self.state = CredentialState.AVAILABLE
        self.quota_expires_at = None

    def mark_failed(self, now: float) -> None:
        self.state = CredentialState.FAILED
        self.quota_expires_at = None
        self.last_failure_at = now

    def mark_quota_limited(self, until: float, now: float) -> None:
        self.state = CredentialState.QUOTA_LIMITED
        self.quota_expires_at = until
        self.last_failure_at = now


@dataclass
class CredentialStatus:
    """
    Read-only snapshot of one credential for diagnostics.

    Never carries the secret itself.
    """

    stable_id: str
    credential: str  # Masked
    state: CredentialState
    is_priority: bool
    quota_expires_at: Optional[float] = None
    quota_remaining_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.stable_id,
            "credential": self.credential,
            "state": self.state.value,
            "is_priority": self.is_priority,
            "quota_expires_at": self.quota_expires_at,
            "quota_remaining_seconds": self.quota_remaining_seconds,
        }
