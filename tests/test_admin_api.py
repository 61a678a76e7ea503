# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quota_dispatch import (
    Outcome,
    QueueClearedError,
    RotatingClient,
    create_admin_router,
)


@pytest.fixture
def rotating_client(credentials, config, clock, fake_sleep, rng):
    return RotatingClient(
        credentials, config=config, clock=clock, sleep=fake_sleep, rng=rng
    )


@pytest.fixture
def ids(rotating_client):
    return [status.stable_id for status in rotating_client.pool.statuses()]


@pytest.fixture
def http(rotating_client):
    app = FastAPI()
    app.include_router(create_admin_router(rotating_client))
    return TestClient(app)


def test_status(http, rotating_client, credentials, ids):
    rotating_client.pool.report(credentials[0], Outcome.quota_exceeded(120))
    rotating_client.pool.report(credentials[1], Outcome.auth_failure())

    response = http.get("/api-keys/status")
    assert response.status_code == 200
    data = response.json()

    assert data["success"] is True
    assert data["summary"]["total"] == 3
    assert data["summary"]["available"] == 1
    assert data["summary"]["quota_limited"] == 1
    assert data["summary"]["failed"] == 1
    assert [key["id"] for key in data["keys"]] == ids
    assert data["keys"][0]["state"] == "quota_limited"
    assert data["keys"][0]["quota_remaining_seconds"] == 120
    assert data["keys"][1]["state"] == "failed"
    for secret in credentials:
        assert secret not in response.text


def test_reset_quota_and_reset_all(http, rotating_client, credentials):
    pool = rotating_client.pool
    pool.report(credentials[0], Outcome.quota_exceeded(120))
    pool.report(credentials[1], Outcome.auth_failure())

    data = http.post("/api-keys/reset-quota").json()
    assert data["success"] is True
    assert data["quota_limits_cleared"] == 1
    assert data["failed_reset"] == 1
    assert pool.available_count() == 3

    pool.report(credentials[2], Outcome.auth_failure())
    data = http.post("/api-keys/reset-all").json()
    assert data["reset"] == 1
    assert pool.failed_count() == 0


def test_rate_limit_stats_and_reset(http, rotating_client, credentials, ids):
    tracker = rotating_client.tracker
    for _ in range(4):
        tracker.record_call(credentials[0])
    tracker.record_call(credentials[1])

    data = http.get("/api-keys/rate-limit-stats").json()
    assert data["success"] is True
    assert data["config"]["hourly_ceiling"] == 100
    by_id = {entry["id"]: entry for entry in data["stats"]}
    assert by_id[ids[0]]["calls_in_window"] == 4
    assert by_id[ids[0]]["usage_percent"] == 4.0
    assert by_id[ids[2]]["calls_in_window"] == 0

    response = http.post("/api-keys/reset-rate-limit", json={"key": ids[0]})
    assert response.status_code == 200
    assert tracker.calls_in_window(credentials[0]) == 0
    assert tracker.calls_in_window(credentials[1]) == 1

    response = http.post("/api-keys/reset-rate-limit")
    assert response.json()["reset"] == "all"
    assert tracker.calls_in_window(credentials[1]) == 0


def test_queue_status_and_clear(http, ids):
    data = http.get("/api-keys/queue-status").json()
    assert data["success"] is True
    assert data["total_queued"] == 0
    assert [queue["id"] for queue in data["queues"]] == ids

    data = http.get("/api-keys/queue-status", params={"key": ids[1]}).json()
    assert len(data["queues"]) == 1
    assert data["queues"][0]["queue_length"] == 0
    assert data["queues"][0]["is_processing"] is False

    data = http.post("/api-keys/clear-queue", json={"key": ids[1]}).json()
    assert data["cleared_count"] == 0
    data = http.post("/api-keys/clear-queue").json()
    assert data["cleared_count"] == 0
    assert "all keys" in data["message"]


@pytest.mark.parametrize(
    "method, path, kwargs",
    [
        ("post", "/api-keys/reset-rate-limit", {"json": {"key": "nope"}}),
        ("get", "/api-keys/queue-status", {"params": {"key": "nope"}}),
        ("post", "/api-keys/clear-queue", {"json": {"key": "nope"}}),
    ],
)
def test_unknown_key_returns_404(http, method, path, kwargs):
    response = getattr(http, method)(path, **kwargs)
    assert response.status_code == 404
    assert response.json()["detail"]["success"] is False
    assert "nope" in response.json()["detail"]["error"]


@pytest.mark.asyncio
async def test_api_clears_waiting_operations(rotating_client, credentials, ids):
    release = asyncio.Event()
    started = asyncio.Event()

    async def blocking(credential):
        started.set()
        await release.wait()
        return "done"

    queue = rotating_client.queue
    running = asyncio.ensure_future(queue.enqueue(credentials[0], blocking))
    await asyncio.wait_for(started.wait(), timeout=1)
    waiting = [
        asyncio.ensure_future(queue.enqueue(credentials[0], lambda c: "never"))
        for _ in range(2)
    ]
    for _ in range(3):
        await asyncio.sleep(0)

    api = rotating_client.api
    status = api.get_queue_status(ids[0])
    assert status["total_queued"] == 2
    assert status["queues"][0]["is_processing"] is True
    assert api.get_summary()["total_queued"] == 2

    assert api.clear_queue(ids[0]) == {"cleared_count": 2}
    results = await asyncio.gather(*waiting, return_exceptions=True)
    assert all(isinstance(r, QueueClearedError) for r in results)

    release.set()
    assert await running == "done"
    await rotating_client.close()
