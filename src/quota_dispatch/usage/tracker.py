# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage tracker.

Records recent call volume per credential over a rolling window and turns it
into a usage percentage against the configured hourly ceiling. The tracker
only measures; the orchestrator decides what to do with the signal.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from ..core.types import DispatchConfig
from ..error_handler import mask_credential

lib_logger = logging.getLogger("quota_dispatch")


@dataclass
class UsageStats:
    """Usage snapshot for one credential."""

    credential: str  # Masked
    calls_in_window: int
    usage_percent: float
    hourly_ceiling: int
    seconds_since_last_call: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential": self.credential,
            "calls_in_window": self.calls_in_window,
            "usage_percent": round(self.usage_percent, 1),
            "hourly_ceiling": self.hourly_ceiling,
            "seconds_since_last_call": self.seconds_since_last_call,
        }


class UsageTracker:
    """
    Rolling-window call counter per credential.

    Each credential keeps a log of call timestamps; entries older than the
    window are pruned on every read and write.
    """

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or DispatchConfig()
        self._clock = clock
        self._calls: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    @property
    def hourly_ceiling(self) -> int:
        return self._config.hourly_ceiling

    def record_call(self, credential: str) -> None:
        """Record one completed upstream call for a credential."""
        with self._lock:
            now = self._clock()
            log = self._calls.setdefault(credential, deque())
            log.append(now)
            self._prune(log, now)

    def calls_in_window(self, credential: str) -> int:
        """Number of calls recorded for the credential within the window."""
        with self._lock:
            log = self._calls.get(credential)
            if not log:
                return 0
            self._prune(log, self._clock())
            return len(log)

    def usage_percent(self, credential: str) -> float:
        """
        Usage as a percentage of the hourly ceiling.

        Returns 0 for credentials with no recorded calls. Can exceed 100.
        """
        calls = self.calls_in_window(credential)
        return (calls / self._config.hourly_ceiling) * 100.0

    def stats(self, credential: Optional[str] = None) -> List[UsageStats]:
        """
        Usage snapshot for one credential, or for every tracked credential.

        Args:
            credential: If given, only this credential (tracked or not)
        """
        with self._lock:
            now = self._clock()
            keys = [credential] if credential is not None else list(self._calls)
            result = []
            for key in keys:
                log = self._calls.get(key) or deque()
                self._prune(log, now)
                calls = len(log)
                result.append(
                    UsageStats(
                        credential=mask_credential(key),
                        calls_in_window=calls,
                        usage_percent=(calls / self._config.hourly_ceiling) * 100.0,
                        hourly_ceiling=self._config.hourly_ceiling,
                        seconds_since_last_call=(now - log[-1]) if log else None,
                    )
                )
            return result

    def reset(self, credential: str) -> None:
        """Forget all recorded calls for one credential."""
        with self._lock:
            self._calls.pop(credential, None)
        lib_logger.info(f"Usage counters reset for {mask_credential(credential)}")

    def clear(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._calls.clear()
        lib_logger.info("Usage counters cleared")

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _prune(self, log: Deque[float], now: float) -> None:
        window = self._config.usage_window_seconds
        while log and now - log[0] >= window:
            log.popleft()
