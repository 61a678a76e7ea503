# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
FastAPI admin router for the dispatch core.

Mount it on the host application:

    from fastapi import FastAPI
    from quota_dispatch import RotatingClient
    from quota_dispatch.integration import create_admin_router

    client = RotatingClient.from_env()
    app = FastAPI()
    app.include_router(create_admin_router(client), prefix="/api")

Every response uses the {"success": true, ...} envelope. Credentials are
addressed by stable id and only ever returned masked.
"""

from typing import Optional, TYPE_CHECKING

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

if TYPE_CHECKING:
    from ..client.rotating_client import RotatingClient


class CredentialSelector(BaseModel):
    """Optional request body selecting one credential by stable id."""

    key: Optional[str] = None


def create_admin_router(client: "RotatingClient") -> APIRouter:
    """
    Build an APIRouter exposing diagnostics and resets for one client.

    Routes:
        GET  /api-keys/status
        POST /api-keys/reset-quota
        POST /api-keys/reset-all
        GET  /api-keys/rate-limit-stats
        POST /api-keys/reset-rate-limit
        GET  /api-keys/queue-status
        POST /api-keys/clear-queue
    """
    router = APIRouter(tags=["api-keys"])
    api = client.api

    def unknown_key(key: str) -> HTTPException:
        return HTTPException(
            status_code=404, detail={"success": False, "error": f"Unknown key '{key}'"}
        )

    @router.get("/api-keys/status")
    async def key_status():
        return {
            "success": True,
            "summary": api.get_summary(),
            "keys": api.get_credential_statuses(),
        }

    @router.post("/api-keys/reset-quota")
    async def reset_quota():
        result = api.reset_quota_limits()
        return {
            "success": True,
            "message": "Cleared all quota limits and failed markings",
            **result,
        }

    @router.post("/api-keys/reset-all")
    async def reset_all():
        result = api.reset_all()
        return {"success": True, "message": "Reset all key states", **result}

    @router.get("/api-keys/rate-limit-stats")
    async def rate_limit_stats():
        config = client.config
        return {
            "success": True,
            "stats": api.get_usage_stats(),
            "config": {
                "hourly_ceiling": config.hourly_ceiling,
                "usage_window_seconds": config.usage_window_seconds,
                "soft_throttle_threshold": config.soft_throttle_threshold,
                "warning_threshold": config.warning_threshold,
                "base_delay": config.base_delay,
                "jitter_min": config.jitter_min,
                "jitter_max": config.jitter_max,
            },
        }

    @router.post("/api-keys/reset-rate-limit")
    async def reset_rate_limit(body: Optional[CredentialSelector] = None):
        key = body.key if body else None
        try:
            result = api.reset_usage(key)
        except KeyError:
            raise unknown_key(key)
        return {"success": True, "message": "Cleared usage counters", **result}

    @router.get("/api-keys/queue-status")
    async def queue_status(key: Optional[str] = None):
        try:
            result = api.get_queue_status(key)
        except KeyError:
            raise unknown_key(key)
        return {"success": True, **result}

    @router.post("/api-keys/clear-queue")
    async def clear_queue(body: Optional[CredentialSelector] = None):
        key = body.key if body else None
        try:
            result = api.clear_queue(key)
        except KeyError:
            raise unknown_key(key)
        target = f"key {key}" if key else "all keys"
        return {
            "success": True,
            "message": f"Cleared queue for {target} ({result['cleared_count']} request(s))",
            **result,
        }

    return router
