# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Tunable default values for the dispatch core.

Every value here can be overridden per RotatingClient through DispatchConfig,
or globally through the DISPATCH_* environment variables read by ConfigLoader.
"""

# =============================================================================
# USAGE TRACKING & SOFT THROTTLE
# =============================================================================

# Calls per credential per rolling hour considered "100% usage"
DEFAULT_HOURLY_CEILING = 100

# Length of the usage window in seconds
DEFAULT_USAGE_WINDOW_SECONDS = 3600

# Above this usage percentage an extra delay is added before dispatch
DEFAULT_SOFT_THROTTLE_THRESHOLD = 80.0

# Above this usage percentage a warning is surfaced to the caller
DEFAULT_WARNING_THRESHOLD = 90.0

# Extra delay (seconds) per percentage point above the soft threshold
DEFAULT_SOFT_THROTTLE_STEP = 0.1

# Upper bound on the soft-throttle delay
DEFAULT_SOFT_THROTTLE_MAX_DELAY = 5.0

# =============================================================================
# SERIAL DISPATCH QUEUE
# =============================================================================

# Minimum pause between two operations on the same credential
DEFAULT_BASE_DELAY = 1.0

# Random jitter added on top of the base delay (uniform in [min, max])
DEFAULT_JITTER_MIN = 0.2
DEFAULT_JITTER_MAX = 0.5

# Maximum number of waiting operations per credential
DEFAULT_MAX_QUEUE_SIZE = 100

# =============================================================================
# RETRY & FAILOVER
# =============================================================================

# Total attempts per orchestrated call, shared across credentials
DEFAULT_MAX_ATTEMPTS = 5

# Same-credential retries before forced failover
DEFAULT_MAX_ATTEMPTS_PER_CREDENTIAL = 3

# Pause before re-selecting a credential after a failover-triggering error
DEFAULT_FAILOVER_DELAY = 0.5

# Transient backoff: backoff_base * 2^(n-1), capped at backoff_max
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_BACKOFF_MAX = 10.0

# =============================================================================
# QUOTA RESET POLICY
# =============================================================================

# "next_day" (wall-clock daily reset) or "fixed_ttl"
DEFAULT_QUOTA_RESET_MODE = "next_day"

# Daily quota reset time for "next_day" mode, HH:MM in UTC
DEFAULT_DAILY_RESET_TIME_UTC = "00:00"

# Quota-limit duration for "fixed_ttl" mode, in seconds
DEFAULT_QUOTA_RESET_TTL = 3600

# When no alternate credential exists, wait out a server-provided retry
# interval up to this many seconds instead of failing immediately
DEFAULT_WAIT_ON_QUOTA_WHEN_EXHAUSTED = True
DEFAULT_MAX_QUOTA_WAIT = 120.0

# =============================================================================
# CREDENTIAL COLLECTION
# =============================================================================

# Environment prefix for credentials: {PREFIX}S, {PREFIX}, {PREFIX}_1..N
DEFAULT_CREDENTIAL_ENV_PREFIX = "UPSTREAM_API_KEY"
