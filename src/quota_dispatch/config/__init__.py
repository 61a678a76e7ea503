# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Tunable defaults for the dispatch core."""

from .defaults import (
    # Usage tracking & soft throttle
    DEFAULT_HOURLY_CEILING,
    DEFAULT_USAGE_WINDOW_SECONDS,
    DEFAULT_SOFT_THROTTLE_THRESHOLD,
    DEFAULT_WARNING_THRESHOLD,
    DEFAULT_SOFT_THROTTLE_STEP,
    DEFAULT_SOFT_THROTTLE_MAX_DELAY,
    # Serial dispatch queue
    DEFAULT_BASE_DELAY,
    DEFAULT_JITTER_MIN,
    DEFAULT_JITTER_MAX,
    DEFAULT_MAX_QUEUE_SIZE,
    # Retry & failover
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_ATTEMPTS_PER_CREDENTIAL,
    DEFAULT_FAILOVER_DELAY,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_MAX,
    # Quota reset policy
    DEFAULT_QUOTA_RESET_MODE,
    DEFAULT_DAILY_RESET_TIME_UTC,
    DEFAULT_QUOTA_RESET_TTL,
    DEFAULT_WAIT_ON_QUOTA_WHEN_EXHAUSTED,
    DEFAULT_MAX_QUOTA_WAIT,
    # Credential collection
    DEFAULT_CREDENTIAL_ENV_PREFIX,
)

__all__ = [
    "DEFAULT_HOURLY_CEILING",
    "DEFAULT_USAGE_WINDOW_SECONDS",
    "DEFAULT_SOFT_THROTTLE_THRESHOLD",
    "DEFAULT_WARNING_THRESHOLD",
    "DEFAULT_SOFT_THROTTLE_STEP",
    "DEFAULT_SOFT_THROTTLE_MAX_DELAY",
    "DEFAULT_BASE_DELAY",
    "DEFAULT_JITTER_MIN",
    "DEFAULT_JITTER_MAX",
    "DEFAULT_MAX_QUEUE_SIZE",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_ATTEMPTS_PER_CREDENTIAL",
    "DEFAULT_FAILOVER_DELAY",
    "DEFAULT_BACKOFF_BASE",
    "DEFAULT_BACKOFF_MAX",
    "DEFAULT_QUOTA_RESET_MODE",
    "DEFAULT_DAILY_RESET_TIME_UTC",
    "DEFAULT_QUOTA_RESET_TTL",
    "DEFAULT_WAIT_ON_QUOTA_WHEN_EXHAUSTED",
    "DEFAULT_MAX_QUOTA_WAIT",
    "DEFAULT_CREDENTIAL_ENV_PREFIX",
]
