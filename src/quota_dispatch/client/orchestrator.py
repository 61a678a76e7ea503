# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Retry orchestrator.

Ties the pool, tracker and queue together: selects a credential, applies
the usage brake, dispatches the operation through the credential's queue,
classifies failures and decides between retrying, failing over, waiting
out a quota window and giving up.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from ..core.types import DispatchConfig
from ..dispatch import Operation, SerialDispatchQueue
from ..error_handler import (
    ClassifiedError,
    DispatchError,
    ErrorType,
    ExhaustedError,
    classify_error,
    mask_credential,
    should_retry_same_key,
    should_rotate_on_error,
)
from ..pool import CredentialPool, Outcome
from ..usage import UsageTracker
from .types import AvailabilityStats, DispatchAttempt

lib_logger = logging.getLogger("quota_dispatch")

StatusCallback = Callable[[str], None]


class RetryOrchestrator:
    """
    Runs one operation to completion across the credential pool.

    Per call:
    - Auth failure: mark the credential failed, pause, select again
    - Quota exceeded: mark the credential quota-limited; select another
      after a short pause if one is usable, otherwise wait out a short
      server-provided retry interval or raise ExhaustedError with the
      earliest ETA
    - Transient failure: back off exponentially on the same credential,
      fail over once its retry cap is reached
    - Anything else: re-raised unchanged

    The total number of upstream calls never exceeds max_attempts.
    """

    def __init__(
        self,
        pool: CredentialPool,
        tracker: UsageTracker,
        queue: SerialDispatchQueue,
        config: Optional[DispatchConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self._pool = pool
        self._tracker = tracker
        self._queue = queue
        self._config = config or DispatchConfig()
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        operation: Operation,
        max_attempts: Optional[int] = None,
        max_attempts_per_credential: Optional[int] = None,
        priority: int = 0,
        on_status: Optional[StatusCallback] = None,
    ) -> Any:
        """
        Run operation(credential) with retries and failover.

        Args:
            operation: Callable taking one credential; may be async
            max_attempts: Upstream calls allowed across all credentials
            max_attempts_per_credential: Transient retries before failover
            priority: Queue priority for every dispatch of this call
            on_status: Receives human-readable progress messages

        Returns:
            The operation's result

        Raises:
            NoCredentialsError: The pool is empty
            ExhaustedError: No usable credential is left
            CapacityError: The selected credential's queue is full
            UpstreamCallError: Attempts ran out (subclass per classification)
            Exception: Unclassified errors from the operation, unchanged
        """
        if max_attempts is None:
            max_attempts = self._config.max_attempts
        if max_attempts_per_credential is None:
            max_attempts_per_credential = self._config.max_attempts_per_credential
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if max_attempts_per_credential < 1:
            raise ValueError("max_attempts_per_credential must be at least 1")

        state = DispatchAttempt(
            max_attempts=max_attempts,
            max_attempts_per_credential=max_attempts_per_credential,
        )

        while state.attempts_remaining > 0:
            if state.needs_credential:
                if state.current is not None:
                    self._notify(
                        on_status,
                        f"Credential {mask_credential(state.current)} failed "
                        f"{state.credential_retries} time(s), switching credential",
                    )
                    state.abandon()
                state.select(self._select(state))

            credential = state.current
            await self._apply_usage_brake(credential, on_status)

            state.attempt += 1
            lib_logger.info(
                f"Attempting call with credential {mask_credential(credential)} "
                f"(Attempt {state.attempt}/{state.max_attempts})"
            )
            try:
                result = await self._queue.enqueue(credential, operation, priority)
            except DispatchError:
                raise
            except Exception as e:
                self._tracker.record_call(credential)
                classified = classify_error(e, now=self._clock())
                if classified.error_type == ErrorType.UNCLASSIFIED:
                    lib_logger.debug(
                        f"Unclassified error from {mask_credential(credential)}, "
                        f"not retrying: {type(e).__name__}"
                    )
                    raise

                state.record_failure(credential, classified)
                await self._handle_failure(state, credential, classified, on_status)
                continue

            self._tracker.record_call(credential)
            self._pool.report(credential, Outcome.success())
            return result

        last_error = state.last_error
        lib_logger.warning(
            f"Giving up after {state.attempt} attempt(s): "
            f"{last_error.error_type.value} on "
            f"{mask_credential(state.last_credential)}"
        )

        eta = retry_after = None
        if last_error.error_type == ErrorType.QUOTA_EXCEEDED:
            # The pool knows the reset time even when the upstream gave no hint
            eta = self._pool.earliest_quota_expiry()
            retry_after = last_error.retry_after
            if retry_after is None and eta is not None:
                retry_after = max(0.0, eta - self._clock())
        raise last_error.to_call_error(
            mask_credential(state.last_credential),
            retry_after=retry_after,
            eta=eta,
        ) from last_error.original_exception

    def availability(self) -> AvailabilityStats:
        """Snapshot of credential availability."""
        return AvailabilityStats(
            available=self._pool.available_count(),
            quota_limited=self._pool.quota_limited_count(),
            failed=self._pool.failed_count(),
            total=len(self._pool),
        )

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _select(self, state: DispatchAttempt) -> str:
        try:
            credential = self._pool.pick(exclude=state.excluded)
        except ExhaustedError as e:
            if e.last_error is None:
                e.last_error = state.last_error
            raise
        lib_logger.debug(
            f"Using credential {mask_credential(credential)} ({self.availability()})"
        )
        return credential

    async def _handle_failure(
        self,
        state: DispatchAttempt,
        credential: str,
        classified: ClassifiedError,
        on_status: Optional[StatusCallback],
    ) -> None:
        """Update pool state and wait as required before the next attempt."""
        masked = mask_credential(credential)
        has_more = state.attempts_remaining > 0
        status = (
            f" ({classified.status_code})" if classified.status_code is not None else ""
        )
        next_step = "switching credential" if has_more else "no attempts left"

        if should_retry_same_key(classified):
            # Same credential, growing backoff
            self._pool.report(credential, Outcome.transient_failure())
            if not has_more:
                return
            state.credential_retries += 1
            delay = min(
                self._config.backoff_base * (2 ** (state.credential_retries - 1)),
                self._config.backoff_max,
            )
            self._notify(
                on_status,
                f"Upstream temporarily unavailable{status}, "
                f"retrying {masked} in {delay:.1f}s "
                f"({state.credential_retries}/{state.max_attempts_per_credential})",
            )
            await self._sleep(delay)
            return

        if not should_rotate_on_error(classified):
            return

        if classified.error_type == ErrorType.AUTH_FAILURE:
            self._pool.report(credential, Outcome.auth_failure())
            state.release()
            self._notify(
                on_status,
                f"Credential {masked} rejected{status}, "
                f"{next_step} ({state.attempt}/{state.max_attempts})",
            )
            if has_more:
                await self._sleep(self._config.failover_delay)
            return

        if classified.error_type == ErrorType.QUOTA_EXCEEDED:
            retry_after = classified.retry_after
            self._pool.report(credential, Outcome.quota_exceeded(retry_after))
            state.release()

            if self._pool.has_usable(state.excluded):
                self._notify(
                    on_status,
                    f"Credential {masked} quota exceeded, {next_step} "
                    f"({state.attempt}/{state.max_attempts})",
                )
                if has_more:
                    await self._sleep(self._config.failover_delay)
                return

            if (
                has_more
                and self._config.wait_on_quota_when_exhausted
                and retry_after is not None
                and retry_after <= self._config.max_quota_wait
            ):
                self._notify(
                    on_status,
                    f"Credential {masked} quota exceeded and no alternative "
                    f"available, waiting {retry_after:.0f}s",
                )
                await self._sleep(retry_after)
                return

            eta = self._pool.earliest_quota_expiry()
            wait = max(0.0, eta - self._clock()) if eta is not None else None
            self._notify(
                on_status,
                "All credentials exhausted"
                + (f", retry after {wait:.0f}s" if wait is not None else ""),
            )
            raise ExhaustedError(
                eta=eta, retry_after=wait, last_error=classified
            ) from classified.original_exception

    async def _apply_usage_brake(
        self, credential: str, on_status: Optional[StatusCallback]
    ) -> None:
        """Soft throttle: extra delay above the soft threshold, warning above the warning one."""
        usage = self._tracker.usage_percent(credential)

        if usage > self._config.warning_threshold:
            self._notify(
                on_status,
                f"Credential {mask_credential(credential)} at {usage:.0f}% "
                f"of hourly ceiling",
                level=logging.WARNING,
            )

        if usage > self._config.soft_throttle_threshold:
            delay = min(
                self._config.soft_throttle_max_delay,
                self._config.soft_throttle_step
                * (usage - self._config.soft_throttle_threshold),
            )
            lib_logger.debug(
                f"Usage {usage:.0f}% on {mask_credential(credential)}, "
                f"throttling {delay:.2f}s"
            )
            await self._sleep(delay)

    def _notify(
        self,
        on_status: Optional[StatusCallback],
        message: str,
        level: int = logging.INFO,
    ) -> None:
        lib_logger.log(level, message)
        if on_status is None:
            return
        try:
            on_status(message)
        except Exception as e:
            lib_logger.warning(f"Status callback failed: {e}")
