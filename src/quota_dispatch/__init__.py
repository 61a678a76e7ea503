# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
quota_dispatch: credential rotation and quota-aware dispatch.

Sends many operations against one rate-limited upstream API through a pool
of interchangeable credentials, serializing traffic per credential,
retrying transient failures and failing over when a credential is
rejected or out of quota.

The library logs to the "quota_dispatch" logger and never configures
handlers itself.
"""

from .core import (
    DispatchConfig,
    QuotaResetMode,
    ConfigLoader,
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
    ErrorType,
    ClassifiedError,
    classify_error,
    mask_credential,
)
from .pool import CredentialPool, CredentialState, Outcome, OutcomeKind
from .usage import UsageTracker
from .dispatch import SerialDispatchQueue
from .client import RetryOrchestrator, RotatingClient
from .integration import DispatchAPI, create_admin_router

__version__ = "1.0.0"

__all__ = [
    # Main public API
    "RotatingClient",
    "DispatchConfig",
    "QuotaResetMode",
    "ConfigLoader",
    # Components
    "CredentialPool",
    "CredentialState",
    "Outcome",
    "OutcomeKind",
    "UsageTracker",
    "SerialDispatchQueue",
    "RetryOrchestrator",
    "DispatchAPI",
    "create_admin_router",
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
    "mask_credential",
]
