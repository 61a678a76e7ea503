# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Dispatch API Facade for Reading and Resetting Dispatch State.

This module provides a clean, public API for programmatically interacting with
the credential pool, usage counters and dispatch queues. It's accessible via
`client.api` and is intended for:

    - Admin endpoints (viewing/resetting credential state)
    - Monitoring and alerting (checking availability, queue depth)
    - External tooling and integrations

Every method returns JSON-ready dicts and lists. Credentials are addressed by
their stable id (a truncated SHA-256 of the secret) and only ever shown masked.

=============================================================================
ACCESSING THE API
=============================================================================

    client = RotatingClient.from_env()
    api = client.api

=============================================================================
AVAILABLE METHODS
=============================================================================

Reading State
-------------

    summary = api.get_summary()
    # {"total": 3, "available": 2, "quota_limited": 1, "failed": 0,
    #  "earliest_quota_expiry": 1767225600.0, "total_queued": 4}

    for status in api.get_credential_statuses():
        print(status["id"], status["state"], status["quota_remaining_seconds"])

    usage = api.get_usage_stats()
    queues = api.get_queue_status()

Resetting State
---------------

    api.reset_quota_limits()       # quota-limited -> available
    api.reset_failed()             # failed -> available
    api.reset_all()                # everything -> available
    api.reset_usage()              # forget usage counters
    api.clear_queue("3f2a9c...")   # fail waiting operations for one credential
    api.clear_queue()              # ... or for every credential

See integration/admin.py for a ready-made FastAPI router built on this API.
=============================================================================
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..pool import stable_id_for

if TYPE_CHECKING:
    from ..client.rotating_client import RotatingClient


class DispatchAPI:
    """
    Public API facade for reading and resetting dispatch state.

    Access via: client.api
    """

    def __init__(self, client: "RotatingClient"):
        """
        Initialize the API facade.

        Args:
            client: The RotatingClient instance to wrap.
        """
        self._client = client

    # =========================================================================
    # READING STATE
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Aggregate availability counts and total queued operations."""
        pool = self._client.pool
        return {
            "total": len(pool),
            "available": pool.available_count(),
            "quota_limited": pool.quota_limited_count(),
            "failed": pool.failed_count(),
            "earliest_quota_expiry": pool.earliest_quota_expiry(),
            "total_queued": self._client.queue.total_queued(),
        }

    def get_credential_statuses(self) -> List[Dict[str, Any]]:
        """Per-credential state, in pool order."""
        return [status.to_dict() for status in self._client.pool.statuses()]

    def get_usage_stats(self, credential_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Rolling-window usage per credential.

        Args:
            credential_id: Stable id of one credential. None for all.

        Raises:
            KeyError: Unknown credential id
        """
        pool = self._client.pool
        tracker = self._client.tracker
        secrets = [self._resolve(credential_id)] if credential_id else pool.credentials

        result = []
        for secret in secrets:
            stats = tracker.stats(secret)[0].to_dict()
            stats["id"] = self._stable_id(secret)
            result.append(stats)
        return result

    def get_queue_status(self, credential_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Queue depth and drain state per credential.

        Args:
            credential_id: Stable id of one credential. None for all.

        Raises:
            KeyError: Unknown credential id
        """
        queue = self._client.queue
        secrets = (
            [self._resolve(credential_id)]
            if credential_id
            else self._client.pool.credentials
        )

        queues = []
        for secret in secrets:
            status = queue.status(secret)[0].to_dict()
            status["id"] = self._stable_id(secret)
            queues.append(status)
        return {"total_queued": queue.total_queued(), "queues": queues}

    # =========================================================================
    # RESETTING STATE
    # =========================================================================

    def reset_quota_limits(self, include_failed: bool = True) -> Dict[str, int]:
        """
        Return quota-limited (and by default failed) credentials to available.
        """
        pool = self._client.pool
        cleared = pool.clear_quota_limits()
        reset = pool.reset_failed() if include_failed else 0
        return {"quota_limits_cleared": cleared, "failed_reset": reset}

    def reset_failed(self) -> Dict[str, int]:
        return {"failed_reset": self._client.pool.reset_failed()}

    def reset_all(self) -> Dict[str, int]:
        """Return every credential to available."""
        return {"reset": self._client.pool.reset_all()}

    def reset_usage(self, credential_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Forget usage counters for one credential, or for all.

        Raises:
            KeyError: Unknown credential id
        """
        tracker = self._client.tracker
        if credential_id:
            tracker.reset(self._resolve(credential_id))
            return {"reset": credential_id}
        tracker.clear()
        return {"reset": "all"}

    def clear_queue(self, credential_id: Optional[str] = None) -> Dict[str, int]:
        """
        Fail waiting operations for one credential, or for all.

        Operations already executing are not interrupted.

        Raises:
            KeyError: Unknown credential id
        """
        queue = self._client.queue
        if credential_id:
            count = queue.clear(self._resolve(credential_id))
        else:
            count = queue.clear_all()
        return {"cleared_count": count}

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _resolve(self, credential_id: str) -> str:
        secret = self._client.pool.credential_for_id(credential_id)
        if secret is None:
            raise KeyError(credential_id)
        return secret

    def _stable_id(self, secret: str) -> str:
        return stable_id_for(secret)
