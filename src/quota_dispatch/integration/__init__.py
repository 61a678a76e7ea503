# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Integration surfaces for host applications.

- DispatchAPI: read-only diagnostics and administrative resets
- create_admin_router: FastAPI router built on DispatchAPI
"""

from .api import DispatchAPI
from .admin import CredentialSelector, create_admin_router

__all__ = [
    "DispatchAPI",
    "CredentialSelector",
    "create_admin_router",
]
