# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Serial dispatch queue.

Runs operations one at a time per credential, highest priority first
(ties in arrival order), with a base delay plus random jitter between
consecutive operations on the same credential. Different credentials
drain fully in parallel.
"""

import asyncio
import heapq
import inspect
import itertools
import logging
import random
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.types import DispatchConfig
from ..error_handler import CapacityError, QueueClearedError, mask_credential
from .types import CredentialQueue, Operation, QueuedOperation, QueueStatus

lib_logger = logging.getLogger("quota_dispatch")


class SerialDispatchQueue:
    """
    Per-credential priority queue with one drain task per credential.

    At most one operation per credential executes at any time. The drain
    task stays alive through the inter-request delay, so an operation that
    arrives during that delay still waits it out.

    Usage:
        queue = SerialDispatchQueue(config)
        result = await queue.enqueue(api_key, call_upstream, priority=1)
    """

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the queue.

        Args:
            config: Dispatch configuration (delays, queue bound)
            sleep: Awaitable sleep used for inter-request delays
            rng: Random source for jitter
            clock: Returns the current epoch time in seconds
        """
        self._config = config or DispatchConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self._queues: Dict[str, CredentialQueue] = {}
        self._sequence = itertools.count()
        self._closed = False

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def enqueue(
        self,
        credential: str,
        operation: Operation,
        priority: int = 0,
    ) -> Any:
        """
        Run operation(credential) in this credential's queue.

        Args:
            credential: Credential the operation runs against
            operation: Callable taking the credential; may be async
            priority: Higher runs first; ties run in arrival order

        Returns:
            Whatever the operation returns

        Raises:
            CapacityError: The credential's queue is full
            QueueClearedError: The operation was removed by clear()/clear_all()
            Exception: Whatever the operation raised, unchanged
        """
        if self._closed:
            raise QueueClearedError(mask_credential(credential))

        queue = self._queues.setdefault(credential, CredentialQueue())
        waiting = len(queue.waiting())
        if waiting >= self._config.max_queue_size:
            lib_logger.warning(
                f"Queue for {mask_credential(credential)} is full "
                f"({waiting}/{self._config.max_queue_size}), rejecting operation"
            )
            raise CapacityError(
                mask_credential(credential), self._config.max_queue_size
            )

        loop = asyncio.get_running_loop()
        item = QueuedOperation(
            id=uuid.uuid4().hex[:12],
            operation=operation,
            priority=priority,
            enqueued_at=self._clock(),
            future=loop.create_future(),
        )
        heapq.heappush(queue.heap, (-priority, next(self._sequence), item))
        lib_logger.debug(
            f"Queued operation {item.id} for {mask_credential(credential)} "
            f"(priority={priority}, waiting={waiting + 1})"
        )

        if not queue.draining:
            queue.task = loop.create_task(self._drain(credential, queue))

        try:
            return await item.future
        except asyncio.CancelledError:
            if not item.started:
                self._discard(queue, item)
                lib_logger.debug(
                    f"Operation {item.id} cancelled before start, removed from queue"
                )
            raise

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def clear(self, credential: str) -> int:
        """
        Fail every waiting operation for a credential with QueueClearedError.

        An operation already executing is not interrupted.

        Returns:
            Number of operations failed
        """
        queue = self._queues.get(credential)
        if queue is None:
            return 0

        count = self._fail_waiting(queue, credential)
        if not queue.draining:
            del self._queues[credential]
        lib_logger.info(
            f"Cleared {count} waiting operation(s) for {mask_credential(credential)}"
        )
        return count

    def clear_all(self) -> int:
        """
        Fail every waiting operation on every credential.

        Returns:
            Total number of operations failed
        """
        total = 0
        for credential in list(self._queues):
            total += self.clear(credential)
        return total

    async def shutdown(self) -> None:
        """Fail waiting operations and stop every drain task."""
        self._closed = True
        self.clear_all()
        tasks = [q.task for q in self._queues.values() if q.draining]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._queues.clear()

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    def status(self, credential: Optional[str] = None) -> List[QueueStatus]:
        """
        Queue snapshot for one credential, or for every known credential.

        Args:
            credential: If given, only this credential
        """
        now = self._clock()
        if credential is not None:
            items = [(credential, self._queues.get(credential) or CredentialQueue())]
        else:
            items = list(self._queues.items())

        result = []
        for key, queue in items:
            waiting = queue.waiting()
            oldest = min((op.enqueued_at for op in waiting), default=None)
            result.append(
                QueueStatus(
                    credential=mask_credential(key),
                    queue_length=len(waiting),
                    is_processing=queue.draining,
                    oldest_request_age=max(0.0, now - oldest) if oldest else 0.0,
                )
            )
        return result

    def queue_length(self, credential: str) -> int:
        queue = self._queues.get(credential)
        return len(queue.waiting()) if queue else 0

    def total_queued(self) -> int:
        """Total number of waiting operations across all credentials."""
        return sum(len(q.waiting()) for q in self._queues.values())

    def is_processing(self, credential: str) -> bool:
        queue = self._queues.get(credential)
        return queue.draining if queue else False

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    async def _drain(self, credential: str, queue: CredentialQueue) -> None:
        """Run queued operations one at a time until the queue is empty."""
        masked = mask_credential(credential)
        try:
            while queue.heap:
                _, _, item = heapq.heappop(queue.heap)
                if item.future.done():
                    continue

                item.started = True
                queue.current = item
                lib_logger.debug(f"Running operation {item.id} on {masked}")
                try:
                    if _is_async(item.operation):
                        result = await item.operation(credential)
                    else:
                        # Blocking callables must not stall other credentials
                        result = await asyncio.to_thread(item.operation, credential)
                        if inspect.isawaitable(result):
                            result = await result
                except asyncio.CancelledError:
                    if not item.future.done():
                        item.future.cancel()
                    raise
                except Exception as e:
                    if not item.future.done():
                        item.future.set_exception(e)
                else:
                    if not item.future.done():
                        item.future.set_result(result)
                finally:
                    queue.current = None

                delay = self._next_delay()
                lib_logger.debug(f"Waiting {delay:.2f}s before next operation on {masked}")
                await self._sleep(delay)
        except asyncio.CancelledError:
            self._fail_waiting(queue, credential)
            raise
        except Exception as e:
            lib_logger.error(f"Unexpected error draining queue for {masked}: {e}")
            self._fail_waiting(queue, credential, error=e)
        finally:
            queue.task = None

    def _next_delay(self) -> float:
        jitter = self._rng.uniform(self._config.jitter_min, self._config.jitter_max)
        return self._config.base_delay + jitter

    def _discard(self, queue: CredentialQueue, item: QueuedOperation) -> None:
        queue.heap = [entry for entry in queue.heap if entry[2] is not item]
        heapq.heapify(queue.heap)

    def _fail_waiting(
        self,
        queue: CredentialQueue,
        credential: str,
        error: Optional[Exception] = None,
    ) -> int:
        count = 0
        for _, _, item in queue.heap:
            if not item.future.done():
                item.future.set_exception(
                    error or QueueClearedError(mask_credential(credential))
                )
                count += 1
        queue.heap.clear()
        return count


def _is_async(operation: Operation) -> bool:
    """True for coroutine functions and objects with an async __call__."""
    return inspect.iscoroutinefunction(operation) or inspect.iscoroutinefunction(
        getattr(operation, "__call__", None)
    )
