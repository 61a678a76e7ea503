# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Core package for the dispatch library.

Provides shared infrastructure used by the pool, tracker, queue and client:
- types: DispatchConfig and shared enums
- errors: All custom exceptions and error classification
- config: ConfigLoader for centralized configuration
- constants: Default values and environment variable names
"""

from .types import (
    DispatchConfig,
    QuotaResetMode,
)

from .errors import (
    # Base exceptions
    UpstreamFailure,
    DispatchError,
    NoCredentialsError,
    ExhaustedError,
    CapacityError,
    QueueClearedError,
    UpstreamCallError,
    AuthFailureError,
    QuotaExceededError,
    TransientFailureError,
    # Error classification
    ErrorType,
    ClassifiedError,
    classify_error,
    should_rotate_on_error,
    should_retry_same_key,
    mask_credential,
    get_retry_after,
)

from .config import ConfigLoader

__all__ = [
    # Types
    "DispatchConfig",
    "QuotaResetMode",
    # Errors
    "UpstreamFailure",
    "DispatchError",
    "NoCredentialsError",
    "ExhaustedError",
    "CapacityError",
    "QueueClearedError",
    "UpstreamCallError",
    "AuthFailureError",
    "QuotaExceededError",
    "TransientFailureError",
    "ErrorType",
    "ClassifiedError",
    "classify_error",
    "should_rotate_on_error",
    "should_retry_same_key",
    "mask_credential",
    "get_retry_after",
    # Config
    "ConfigLoader",
]
