# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Shared fixtures for dispatch tests."""

import asyncio
import random
from typing import List

import pytest

from quota_dispatch import DispatchConfig


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_767_225_600.0):  # 2026-01-01 00:00 UTC
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """
    Records every requested delay and advances the fake clock by it.

    Yields to the event loop once per call so other tasks can run.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def make_sleep(clock):
    """Factory for independent sleep recorders sharing one clock."""
    return lambda: FakeSleep(clock)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def config():
    """Default config with the queue delay made deterministic."""
    return DispatchConfig(jitter_min=0.3, jitter_max=0.3)


@pytest.fixture
def credentials():
    return [
        "key-alpha-0000000001",
        "key-bravo-0000000002",
        "key-charlie-000000003",
    ]
