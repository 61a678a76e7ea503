# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential pool package.

Owns credential lifecycle state and credential selection.
"""

from .types import (
    Credential,
    CredentialState,
    CredentialStatus,
    Outcome,
    OutcomeKind,
    stable_id_for,
)
from .credential_pool import CredentialPool

__all__ = [
    "Credential",
    "CredentialState",
    "CredentialStatus",
    "Outcome",
    "OutcomeKind",
    "stable_id_for",
    "CredentialPool",
]
