# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Background redelivery of queued confirmation codes.

The :class:`RequeueWorker` wakes up on a fixed interval, takes at most one
item from the :class:`~async_code_mailer.failure_queue.FailureQueue` and
tries a single send. The interval itself is the backoff, so the bounded
foreground retry is not used here.

Per-cycle decisions:

- simulated transport: nothing is dequeued or changed;
- empty queue: nothing to do;
- ``attempt_count >= retry_limit``: the item is dropped as a terminal failure;
- send succeeds: the item is discarded;
- send fails: ``attempt_count`` grows by one, and the item goes back to the
  tail unless that exhausts ``retry_limit``, in which case it is dropped.

:meth:`RequeueWorker.run_cycle` runs one cycle on demand, which is what tests
and the ``run-now`` command use instead of waiting for the timer.
"""

from __future__ import annotations

import asyncio
import math
from enum import Enum
from typing import Optional

from .failure_queue import FailureQueue
from .logger import get_logger
from .models import QueuedItem, SendResult
from .transport import Transport, build_confirmation_message

DEFAULT_REQUEUE_INTERVAL = 60.0
DEFAULT_BACKGROUND_RETRY_LIMIT = 3


class CycleOutcome(str, Enum):
    IDLE = "idle"
    DELIVERED = "delivered"
    REQUEUED = "requeued"
    DROPPED = "dropped"


class RequeueWorker:
    """Periodic task draining the failure queue one item per cycle.

    Attributes:
        queue: Shared failure queue.
        transport: Transport used for redelivery.
        retry_limit: Failed cycles an item may accumulate before it is dropped.
        interval: Seconds between cycles; ``math.inf`` waits for :meth:`wake`.
    """

    def __init__(
        self,
        queue: FailureQueue,
        transport: Transport,
        *,
        sender: Optional[str] = None,
        retry_limit: int = DEFAULT_BACKGROUND_RETRY_LIMIT,
        interval: float = DEFAULT_REQUEUE_INTERVAL,
        metrics=None,
        logger=None,
        log_delivery_activity: bool = False,
    ):
        self.queue = queue
        self.transport = transport
        self.sender = sender
        self.retry_limit = max(1, int(retry_limit))
        self.interval = float(interval)
        self.metrics = metrics
        self.logger = logger or get_logger("CodeMailer.worker")
        self._log_delivery_activity = bool(log_delivery_activity)
        self._stop = asyncio.Event()
        self._wake_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()

    # ----------------------------------------------------------------- lifecycle
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop; a second call is a no-op."""
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="requeue-worker")
        self.logger.debug("Requeue worker started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop the loop and wait for the in-flight cycle to finish."""
        self._stop.set()
        self._wake_event.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        self.logger.debug("Requeue worker stopped")

    def wake(self) -> None:
        """Run the next cycle now instead of waiting for the interval."""
        self._wake_event.set()

    async def _loop(self) -> None:
        while not self._stop.is_set():
            await self._wait_for_wakeup(self.interval)
            if self._stop.is_set():
                break
            try:
                await self.run_cycle()
            except Exception as exc:  # pragma: no cover
                self.logger.exception("Unhandled error in requeue worker: %s", exc)

    async def _wait_for_wakeup(self, timeout: float) -> None:
        if self._stop.is_set():
            return
        if math.isinf(timeout):
            await self._wake_event.wait()
            self._wake_event.clear()
            return
        try:
            async with asyncio.timeout(max(0.0, timeout)):
                await self._wake_event.wait()
        except asyncio.TimeoutError:
            return
        self._wake_event.clear()

    # --------------------------------------------------------------------- cycle
    async def run_cycle(self) -> CycleOutcome:
        """Process at most one queued item and report what happened."""
        async with self._cycle_lock:
            outcome = await self._process_one()
        if self.metrics is not None:
            self.metrics.set_queue_size(len(self.queue))
        return outcome

    async def _process_one(self) -> CycleOutcome:
        if self.transport.simulated:
            return CycleOutcome.IDLE
        item = await self.queue.pop()
        if item is None:
            return CycleOutcome.IDLE
        if item.attempt_count >= self.retry_limit:
            self._drop(item)
            return CycleOutcome.DROPPED

        result = await self._attempt(item)
        if self.metrics is not None:
            self.metrics.inc_attempt("background", result.ok)
        if result.ok:
            if self._log_delivery_activity:
                self.logger.info(
                    "Redelivered code to %s after %d failed cycle(s)", item.recipient, item.attempt_count
                )
            return CycleOutcome.DELIVERED

        item.attempt_count += 1
        item.last_error = str(result.error) if result.error else "unknown error"
        if item.attempt_count >= self.retry_limit:
            self._drop(item)
            return CycleOutcome.DROPPED
        await self.queue.push(item)
        if self.metrics is not None:
            self.metrics.inc_requeued()
        self.logger.warning(
            "Redelivery to %s failed (cycle %d/%d): %s",
            item.recipient,
            item.attempt_count,
            self.retry_limit,
            item.last_error,
        )
        return CycleOutcome.REQUEUED

    async def _attempt(self, item: QueuedItem) -> SendResult:
        message = build_confirmation_message(self.sender, item.recipient, item.display_name, item.code)
        try:
            return await self.transport.send(message)
        except Exception as exc:
            return SendResult(ok=False, error=exc)

    def _drop(self, item: QueuedItem) -> None:
        if self.metrics is not None:
            self.metrics.inc_dropped()
        self.logger.error(
            "Dropping failed send after %d retries for %s: %s",
            item.attempt_count,
            item.recipient,
            item.last_error or "-",
        )
