# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""End-to-end dispatch through RotatingClient against a mocked HTTP upstream."""

import httpx
import pytest

from quota_dispatch import (
    ExhaustedError,
    QuotaExceededError,
    RotatingClient,
)

PRIORITY = "key-priority-00000000"


def upstream(handler):
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://upstream.example",
    )


def generate(http):
    async def operation(credential):
        response = await http.post(
            "/v1/generate", headers={"x-api-key": credential}, json={"prompt": "hi"}
        )
        response.raise_for_status()
        return response.json()

    return operation


@pytest.fixture
def make_client(credentials, config, clock, fake_sleep, rng):
    def build(**kwargs):
        kwargs.setdefault("config", config)
        return RotatingClient(
            credentials, clock=clock, sleep=fake_sleep, rng=rng, **kwargs
        )

    return build


@pytest.mark.asyncio
async def test_rate_limited_priority_key_fails_over(make_client, credentials):
    seen = []

    def handler(request):
        key = request.headers["x-api-key"]
        seen.append(key)
        if key == PRIORITY:
            return httpx.Response(
                429,
                headers={"Retry-After": "60"},
                json={"error": {"message": "Too many requests"}},
            )
        return httpx.Response(200, json={"served_by": key[-6:]})

    async with make_client(priority=PRIORITY) as client, upstream(handler) as http:
        result = await client.execute(generate(http))

        assert result == {"served_by": credentials[0][-6:]}
        assert seen == [PRIORITY, credentials[0]]
        statuses = client.api.get_credential_statuses()
        assert statuses[0]["is_priority"] is True
        assert statuses[0]["state"] == "quota_limited"
        assert statuses[0]["quota_remaining_seconds"] <= 60


@pytest.mark.asyncio
async def test_every_key_rate_limited(make_client, fake_sleep):
    def handler(request):
        return httpx.Response(
            429,
            json={
                "error": {
                    "code": 429,
                    "message": "Resource has been exhausted",
                    "details": [
                        {
                            "@type": "type.googleapis.com/google.rpc.RetryInfo",
                            "retryDelay": "3600s",
                        }
                    ],
                }
            },
        )

    async with make_client() as client, upstream(handler) as http:
        with pytest.raises(ExhaustedError) as exc_info:
            await client.execute(generate(http))

        error = exc_info.value
        assert isinstance(error.__cause__, httpx.HTTPStatusError)
        assert error.retry_after == pytest.approx(3600, abs=10)
        assert client.availability().quota_limited == 3


@pytest.mark.asyncio
async def test_quota_attempts_run_out(make_client, config):
    calls = []

    def handler(request):
        calls.append(request.headers["x-api-key"])
        return httpx.Response(429, text="Please retry in 5s.")

    async with make_client() as client, upstream(handler) as http:
        with pytest.raises(QuotaExceededError) as exc_info:
            await client.execute(generate(http), max_attempts=2)

    assert len(calls) == 2
    assert exc_info.value.retry_after == 5


@pytest.mark.asyncio
async def test_http_client_is_closed_with_client(make_client):
    client = make_client()
    http = client.http_client
    assert client.http_client is http

    await client.close()
    assert http.is_closed
