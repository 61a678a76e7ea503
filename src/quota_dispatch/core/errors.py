# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error handling for the dispatch core.

This module re-exports all exception classes and error handling utilities
from the error_handler module. It provides a cleaner import path.
"""

from ..error_handler import (
    # Exception classes
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
    # Utilities
    mask_credential,
    get_retry_after,
    extract_retry_after_from_body,
)

__all__ = [
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
    "extract_retry_after_from_body",
]
