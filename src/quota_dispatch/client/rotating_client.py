# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
RotatingClient: the composition root of the dispatch core.

Builds one CredentialPool, UsageTracker, SerialDispatchQueue and
RetryOrchestrator from a single DispatchConfig and exposes them through
execute() and the diagnostics API.
"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

from ..core.config import ConfigLoader
from ..core.constants import DEFAULT_CREDENTIAL_ENV_PREFIX
from ..core.types import DispatchConfig
from ..dispatch import Operation, SerialDispatchQueue
from ..integration.api import DispatchAPI
from ..pool import CredentialPool
from ..usage import UsageTracker
from .orchestrator import RetryOrchestrator, StatusCallback
from .types import AvailabilityStats

lib_logger = logging.getLogger("quota_dispatch")


class RotatingClient:
    """
    A client that serializes, throttles, retries and fails over upstream
    operations across a pool of credentials.

    Each instance owns its own state; independent clients never share
    credentials, counters or queues.

    Usage:
        async with RotatingClient(["key-1", "key-2"], priority="key-0") as client:
            result = await client.execute(call_upstream)
    """

    def __init__(
        self,
        credentials: Iterable[str],
        priority: Optional[str] = None,
        config: Optional[DispatchConfig] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        http_timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            credentials: Credential secrets
            priority: Optional operator-preferred credential
            config: Dispatch configuration. Defaults to ConfigLoader().load_config().
            clock: Returns the current epoch time in seconds
            sleep: Awaitable sleep used for every wait
            rng: Random source for queue jitter
            http_timeout: Timeout for the shared httpx client
        """
        self.config = config or ConfigLoader().load_config()
        self.pool = CredentialPool(
            credentials, priority=priority, config=self.config, clock=clock
        )
        self.tracker = UsageTracker(config=self.config, clock=clock)
        self.queue = SerialDispatchQueue(
            config=self.config, sleep=sleep, rng=rng, clock=clock
        )
        self.orchestrator = RetryOrchestrator(
            self.pool,
            self.tracker,
            self.queue,
            config=self.config,
            sleep=sleep,
            clock=clock,
        )
        self._http_timeout = http_timeout
        self._http_client: Optional[httpx.AsyncClient] = None
        self._api: Optional[DispatchAPI] = None

        lib_logger.info(
            f"RotatingClient initialized with {len(self.pool)} credential(s), "
            f"max_attempts={self.config.max_attempts}, "
            f"max_attempts_per_credential={self.config.max_attempts_per_credential}"
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_CREDENTIAL_ENV_PREFIX,
        loader: Optional[ConfigLoader] = None,
        **kwargs: Any,
    ) -> "RotatingClient":
        """
        Build a client from environment variables.

        Credentials come from {PREFIX}S / {PREFIX} / {PREFIX}_1..N and
        {PREFIX}_PRIORITY; tunables from DISPATCH_* variables.

        Args:
            prefix: Credential variable prefix
            loader: ConfigLoader to use (defaults to one reading os.environ)
            **kwargs: Passed to the constructor (clock, sleep, rng, ...)
        """
        loader = loader or ConfigLoader()
        credentials, priority = loader.load_credentials(prefix)
        config = kwargs.pop("config", None) or loader.load_config()
        return cls(credentials, priority=priority, config=config, **kwargs)

    async def execute(
        self,
        operation: Operation,
        priority: int = 0,
        on_status: Optional[StatusCallback] = None,
        max_attempts: Optional[int] = None,
        max_attempts_per_credential: Optional[int] = None,
    ) -> Any:
        """
        Run operation(credential) with queueing, retries and failover.

        See RetryOrchestrator.run() for the retry policy and raised errors.
        """
        return await self.orchestrator.run(
            operation,
            max_attempts=max_attempts,
            max_attempts_per_credential=max_attempts_per_credential,
            priority=priority,
            on_status=on_status,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Shared httpx client for operations that call the upstream over HTTP."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._http_timeout)
        return self._http_client

    @property
    def api(self) -> DispatchAPI:
        """Diagnostics and administration API."""
        if self._api is None:
            self._api = DispatchAPI(self)
        return self._api

    def availability(self) -> AvailabilityStats:
        return self.orchestrator.availability()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Stop the queues and close the HTTP client to prevent resource leaks."""
        await self.queue.shutdown()
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        lib_logger.debug("RotatingClient closed")
