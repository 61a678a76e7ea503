# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the dispatch core.

Types used by more than one package (pool, dispatch, client) live here.
Package-specific types live in each package's own types module.
"""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict

from .constants import (
    DEFAULT_HOURLY_CEILING,
    DEFAULT_USAGE_WINDOW_SECONDS,
    DEFAULT_SOFT_THROTTLE_THRESHOLD,
    DEFAULT_WARNING_THRESHOLD,
    DEFAULT_SOFT_THROTTLE_STEP,
    DEFAULT_SOFT_THROTTLE_MAX_DELAY,
    DEFAULT_BASE_DELAY,
    DEFAULT_JITTER_MIN,
    DEFAULT_JITTER_MAX,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_ATTEMPTS_PER_CREDENTIAL,
    DEFAULT_FAILOVER_DELAY,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_MAX,
    DEFAULT_QUOTA_RESET_MODE,
    DEFAULT_DAILY_RESET_TIME_UTC,
    DEFAULT_QUOTA_RESET_TTL,
    DEFAULT_WAIT_ON_QUOTA_WHEN_EXHAUSTED,
    DEFAULT_MAX_QUOTA_WAIT,
)


# =============================================================================
# ENUMS
# =============================================================================


class QuotaResetMode(str, Enum):
    """How long a credential stays quota-limited when no retry hint is given."""

    NEXT_DAY = "next_day"  # Until the next daily reset time (UTC)
    FIXED_TTL = "fixed_ttl"  # Fixed number of seconds from now


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class DispatchConfig:
    """
    Complete dispatch configuration.

    Built by ConfigLoader from system defaults, keyword overrides and
    DISPATCH_* environment variables. Every timing and limit used by the
    pool, tracker, queue and orchestrator is read from here.
    """

    # Usage tracking & soft throttle
    hourly_ceiling: int = DEFAULT_HOURLY_CEILING
    usage_window_seconds: int = DEFAULT_USAGE_WINDOW_SECONDS
    soft_throttle_threshold: float = DEFAULT_SOFT_THROTTLE_THRESHOLD
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD
    soft_throttle_step: float = DEFAULT_SOFT_THROTTLE_STEP
    soft_throttle_max_delay: float = DEFAULT_SOFT_THROTTLE_MAX_DELAY

    # Serial dispatch queue
    base_delay: float = DEFAULT_BASE_DELAY
    jitter_min: float = DEFAULT_JITTER_MIN
    jitter_max: float = DEFAULT_JITTER_MAX
    max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE

    # Retry & failover
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    max_attempts_per_credential: int = DEFAULT_MAX_ATTEMPTS_PER_CREDENTIAL
    failover_delay: float = DEFAULT_FAILOVER_DELAY
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_max: float = DEFAULT_BACKOFF_MAX

    # Quota reset policy
    quota_reset_mode: QuotaResetMode = field(
        default_factory=lambda: QuotaResetMode(DEFAULT_QUOTA_RESET_MODE)
    )
    daily_reset_time_utc: str = DEFAULT_DAILY_RESET_TIME_UTC
    quota_reset_ttl: int = DEFAULT_QUOTA_RESET_TTL
    wait_on_quota_when_exhausted: bool = DEFAULT_WAIT_ON_QUOTA_WHEN_EXHAUSTED
    max_quota_wait: float = DEFAULT_MAX_QUOTA_WAIT

    def __post_init__(self) -> None:
        if not isinstance(self.quota_reset_mode, QuotaResetMode):
            self.quota_reset_mode = QuotaResetMode(self.quota_reset_mode)
        if self.jitter_min > self.jitter_max:
            raise ValueError(
                f"jitter_min ({self.jitter_min}) must not exceed "
                f"jitter_max ({self.jitter_max})"
            )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_attempts_per_credential < 1:
            raise ValueError("max_attempts_per_credential must be at least 1")
        if self.hourly_ceiling <= 0:
            raise ValueError("hourly_ceiling must be positive")

    @classmethod
    def field_names(cls) -> tuple:
        return tuple(f.name for f in fields(cls))

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready dict (enum values as strings)."""
        data = asdict(self)
        data["quota_reset_mode"] = self.quota_reset_mode.value
        return data
