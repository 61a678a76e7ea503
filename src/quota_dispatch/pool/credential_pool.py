# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential pool.

Owns the credential list and each credential's lifecycle state
(available / failed / quota-limited-until), and answers "which credential
should the next call use".
"""

import logging
import threading
import time
from datetime import datetime, time as dt_time, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from ..core.types import DispatchConfig, QuotaResetMode
from ..error_handler import ExhaustedError, NoCredentialsError, mask_credential
from .types import (
    Credential,
    CredentialState,
    CredentialStatus,
    Outcome,
    OutcomeKind,
)

lib_logger = logging.getLogger("quota_dispatch")


class CredentialPool:
    """
    Pool of interchangeable credentials for one upstream API.

    Selection order:
    1. The priority credential, while it is available
    2. Round-robin over the list, skipping failed and quota-limited entries

    Quota-limited credentials return to available lazily, on the first
    selection after their expiry. If every credential is failed, all failed
    markings are reset at once before selection.

    All state is guarded by one lock; every public method is safe to call
    from any thread or task.
    """

    def __init__(
        self,
        credentials: Iterable[str],
        priority: Optional[str] = None,
        config: Optional[DispatchConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the pool.

        Args:
            credentials: Credential secrets. Trimmed; blanks and duplicates dropped.
            priority: Optional operator-preferred credential. Added to the
                      pool if not already in credentials.
            config: Dispatch configuration (quota reset policy)
            clock: Returns the current epoch time in seconds
        """
        self._config = config or DispatchConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._cursor = 0
        self._reset_time = self._parse_time(self._config.daily_reset_time_utc)

        priority = priority.strip() if priority else None
        secrets: List[str] = []
        for secret in credentials:
            secret = (secret or "").strip()
            if secret and secret not in secrets:
                secrets.append(secret)
        if priority and priority not in secrets:
            secrets.insert(0, priority)

        self._credentials: List[Credential] = [
            Credential.from_secret(secret, is_priority=(secret == priority))
            for secret in secrets
        ]
        self._by_secret = {c.secret: c for c in self._credentials}
        self._priority: Optional[Credential] = (
            self._by_secret[priority] if priority else None
        )

        lib_logger.debug(
            f"Credential pool initialized with {len(self._credentials)} credential(s)"
            + (f", priority {mask_credential(priority)}" if priority else "")
        )

    # =========================================================================
    # SELECTION
    # =========================================================================

    def pick(self, exclude: Optional[Iterable[str]] = None) -> str:
        """
        Return the next usable credential.

        Args:
            exclude: Credentials the caller has already abandoned for this
                     call; they are skipped even if available.

        Returns:
            The credential secret

        Raises:
            NoCredentialsError: The pool is empty
            ExhaustedError: No credential is usable right now. Carries the
                            earliest quota expiry when any credential is
                            quota-limited.
        """
        excluded = set(exclude or ())
        with self._lock:
            if not self._credentials:
                raise NoCredentialsError()

            now = self._clock()
            self._expire_quota_limits(now)
            self._mass_reset_if_all_failed()

            priority = self._priority
            if (
                priority is not None
                and priority.state == CredentialState.AVAILABLE
                and priority.secret not in excluded
            ):
                lib_logger.debug(f"Selected priority credential {priority.masked}")
                return priority.secret

            count = len(self._credentials)
            for step in range(count):
                index = (self._cursor + step) % count
                candidate = self._credentials[index]
                if candidate.state != CredentialState.AVAILABLE:
                    continue
                if candidate.secret in excluded:
                    continue
                self._cursor = (index + 1) % count
                lib_logger.debug(
                    f"Selected credential {candidate.masked} (round-robin slot {index})"
                )
                return candidate.secret

            eta = self._earliest_quota_expiry()
            retry_after = max(0.0, eta - now) if eta is not None else None

        lib_logger.warning(
            f"No usable credential: {self.available_count()} available, "
            f"{self.quota_limited_count()} quota-limited, "
            f"{self.failed_count()} failed, {len(excluded)} excluded"
        )
        raise ExhaustedError(eta=eta, retry_after=retry_after)

    def has_usable(self, exclude: Optional[Iterable[str]] = None) -> bool:
        """
        Check whether pick(exclude) would currently succeed.

        Applies the same lazy quota expiry and mass-reset rule as pick().
        """
        excluded = set(exclude or ())
        with self._lock:
            if not self._credentials:
                return False
            self._expire_quota_limits(self._clock())
            if all(c.state == CredentialState.FAILED for c in self._credentials):
                return any(c.secret not in excluded for c in self._credentials)
            return any(
                c.state == CredentialState.AVAILABLE and c.secret not in excluded
                for c in self._credentials
            )

    # =========================================================================
    # OUTCOME REPORTING
    # =========================================================================

    def report(self, credential: str, outcome: Outcome) -> None:
        """
        Apply the outcome of one upstream call to the credential's state.

        - SUCCESS, TRANSIENT_FAILURE: no change
        - AUTH_FAILURE: mark failed
        - QUOTA_EXCEEDED: mark quota-limited until now + retry_after, or
          until the configured default reset when no retry_after is given.
          Clears any failed marking.

        Args:
            credential: The credential secret
            outcome: What happened
        """
        with self._lock:
            entry = self._by_secret.get(credential)
            if entry is None:
                lib_logger.warning(
                    f"Outcome reported for unknown credential {mask_credential(credential)}"
                )
                return

            now = self._clock()
            if outcome.kind == OutcomeKind.AUTH_FAILURE:
                entry.mark_failed(now)
                lib_logger.warning(f"Credential {entry.masked} marked as failed")

            elif outcome.kind == OutcomeKind.QUOTA_EXCEEDED:
                if outcome.retry_after is not None:
                    until = now + max(0.0, float(outcome.retry_after))
                else:
                    until = self._default_quota_reset(now)
                entry.mark_quota_limited(until, now)
                lib_logger.warning(
                    f"Credential {entry.masked} quota-limited for "
                    f"{until - now:.0f}s"
                    + ("" if outcome.retry_after is not None else " (default reset)")
                )

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    @property
    def credentials(self) -> List[str]:
        """Credential secrets in pool order."""
        return [c.secret for c in self._credentials]

    @property
    def priority(self) -> Optional[str]:
        return self._priority.secret if self._priority else None

    def __len__(self) -> int:
        return len(self._credentials)

    def available_count(self) -> int:
        return self._count(CredentialState.AVAILABLE)

    def quota_limited_count(self) -> int:
        return self._count(CredentialState.QUOTA_LIMITED)

    def failed_count(self) -> int:
        return self._count(CredentialState.FAILED)

    def earliest_quota_expiry(self) -> Optional[float]:
        """Earliest quota expiry across quota-limited credentials, or None."""
        with self._lock:
            self._expire_quota_limits(self._clock())
            return self._earliest_quota_expiry()

    def statuses(self) -> List[CredentialStatus]:
        """Per-credential status snapshot, in pool order."""
        with self._lock:
            now = self._clock()
            self._expire_quota_limits(now)
            return [
                CredentialStatus(
                    stable_id=c.stable_id,
                    credential=c.masked,
                    state=c.state,
                    is_priority=c.is_priority,
                    quota_expires_at=c.quota_expires_at,
                    quota_remaining_seconds=(
                        max(0.0, c.quota_expires_at - now)
                        if c.quota_expires_at is not None
                        else None
                    ),
                )
                for c in self._credentials
            ]

    def credential_for_id(self, stable_id: str) -> Optional[str]:
        """Look up a credential secret by its stable id."""
        for entry in self._credentials:
            if entry.stable_id == stable_id:
                return entry.secret
        return None

    # =========================================================================
    # ADMINISTRATIVE RESETS
    # =========================================================================

    def clear_quota_limits(self) -> int:
        """Return every quota-limited credential to available. Returns the count."""
        return self._reset_state(CredentialState.QUOTA_LIMITED, "quota limit")

    def reset_failed(self) -> int:
        """Return every failed credential to available. Returns the count."""
        return self._reset_state(CredentialState.FAILED, "failed marking")

    def reset_all(self) -> int:
        """Return every credential to available and rewind the cursor."""
        with self._lock:
            changed = 0
            for entry in self._credentials:
                if entry.state != CredentialState.AVAILABLE:
                    entry.mark_available()
                    changed += 1
            self._cursor = 0
        lib_logger.info(f"Reset all credentials ({changed} changed)")
        return changed

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _count(self, state: CredentialState) -> int:
        with self._lock:
            self._expire_quota_limits(self._clock())
            return sum(1 for c in self._credentials if c.state == state)

    def _reset_state(self, state: CredentialState, label: str) -> int:
        with self._lock:
            changed = 0
            for entry in self._credentials:
                if entry.state == state:
                    entry.mark_available()
                    changed += 1
        if changed:
            lib_logger.info(f"Cleared {label} on {changed} credential(s)")
        return changed

    def _expire_quota_limits(self, now: float) -> None:
        """Return quota-limited credentials whose expiry has passed. Lock held."""
        for entry in self._credentials:
            if (
                entry.state == CredentialState.QUOTA_LIMITED
                and entry.quota_expires_at is not None
                and now >= entry.quota_expires_at
            ):
                entry.mark_available()
                lib_logger.info(f"Quota limit expired for credential {entry.masked}")

    def _mass_reset_if_all_failed(self) -> None:
        """Reset failed markings when every credential is failed. Lock held."""
        if all(c.state == CredentialState.FAILED for c in self._credentials):
            for entry in self._credentials:
                entry.mark_available()
            lib_logger.info(
                f"All {len(self._credentials)} credential(s) failed, "
                f"resetting failed markings"
            )

    def _earliest_quota_expiry(self) -> Optional[float]:
        """Lock held."""
        expiries = [
            c.quota_expires_at
            for c in self._credentials
            if c.state == CredentialState.QUOTA_LIMITED
            and c.quota_expires_at is not None
        ]
        return min(expiries) if expiries else None

    def _default_quota_reset(self, now: float) -> float:
        """Quota expiry used when the upstream gives no retry interval."""
        if self._config.quota_reset_mode == QuotaResetMode.FIXED_TTL:
            return now + self._config.quota_reset_ttl
        return self._next_daily_reset(now)

    def _parse_time(self, time_str: str) -> dt_time:
        """Parse HH:MM time string."""
        try:
            parts = time_str.split(":")
            return dt_time(hour=int(parts[0]), minute=int(parts[1]))
        except (ValueError, IndexError):
            lib_logger.warning(
                f"Invalid daily reset time '{time_str}'. Using '00:00'."
            )
            return dt_time(hour=0, minute=0)

    def _next_daily_reset(self, from_time: float) -> float:
        """Calculate next daily reset timestamp."""
        from_dt = datetime.fromtimestamp(from_time, tz=timezone.utc)
        reset_dt = from_dt.replace(
            hour=self._reset_time.hour,
            minute=self._reset_time.minute,
            second=0,
            microsecond=0,
        )
        if reset_dt <= from_dt:
            reset_dt += timedelta(days=1)

        return reset_dt.timestamp()
