# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Constants and default values for the dispatch core.

This module re-exports all tunable defaults from the config package and adds
the non-tunable constants (environment variable names, logger name).
"""

# Re-export all tunable defaults from config package
from ..config import (
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
    DEFAULT_CREDENTIAL_ENV_PREFIX,
)

# =============================================================================
# ENVIRONMENT VARIABLES
# =============================================================================

ENV_PREFIX = "DISPATCH_"

# DispatchConfig field -> environment variable (ENV_PREFIX + upper-cased name)
ENV_CONFIG_FIELDS = (
    "hourly_ceiling",
    "usage_window_seconds",
    "soft_throttle_threshold",
    "warning_threshold",
    "soft_throttle_step",
    "soft_throttle_max_delay",
    "base_delay",
    "jitter_min",
    "jitter_max",
    "max_queue_size",
    "max_attempts",
    "max_attempts_per_credential",
    "failover_delay",
    "backoff_base",
    "backoff_max",
    "quota_reset_mode",
    "daily_reset_time_utc",
    "quota_reset_ttl",
    "wait_on_quota_when_exhausted",
    "max_quota_wait",
)

# Suffix of the optional priority credential variable: {PREFIX}_PRIORITY
ENV_PRIORITY_SUFFIX = "_PRIORITY"

# Accepted truthy strings for boolean env values
TRUTHY_VALUES = ("true", "1", "yes", "on")

# Logging
LIB_LOGGER_NAME = "quota_dispatch"

__all__ = [
    # From config package
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
    # Environment
    "ENV_PREFIX",
    "ENV_CONFIG_FIELDS",
    "ENV_PRIORITY_SUFFIX",
    "TRUTHY_VALUES",
    # Logging
    "LIB_LOGGER_NAME",
]
