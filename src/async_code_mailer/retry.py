# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bounded, sequential retry for foreground sends.

A request handler calls :meth:`RetrySender.send_with_retry` and waits for
its result; the backoff sleeps suspend only that handler's coroutine.
"""

from __future__ import annotations

import asyncio
from email.message import EmailMessage
from typing import Awaitable, Callable, Sequence

from .logger import get_logger
from .models import RetryResult, SendResult
from .transport import Transport

DEFAULT_RETRY_DELAYS = (1.0, 3.0, 7.0)
DEFAULT_MAX_ATTEMPTS = 3

Sleep = Callable[[float], Awaitable[None]]


def calculate_retry_delay(failed_attempt: int, delays: Sequence[float] = DEFAULT_RETRY_DELAYS) -> float:
    """Return the wait after the ``failed_attempt``-th failure (0-indexed).

    Indexes past the end of ``delays`` reuse the last value.
    """
    if failed_attempt >= len(delays):
        return delays[-1]
    return delays[failed_attempt]


class RetrySender:
    """Send a message up to ``max_attempts`` times with increasing backoff.

    Attempts are strictly sequential: the next one starts only after the
    previous result is known. There is no wait after the final attempt.

    Attributes:
        transport: The transport used for each attempt.
        max_attempts: Total attempts, the first one included.
        delays: Backoff sequence in seconds.
        sleep: Awaitable used to wait between attempts; tests swap it for a
            recorder so no wall-clock time passes.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        sleep: Sleep = asyncio.sleep,
        metrics=None,
        logger=None,
    ):
        if not delays:
            raise ValueError("delays must not be empty")
        self.transport = transport
        self.max_attempts = max(1, int(max_attempts))
        self.delays = tuple(float(d) for d in delays)
        self.sleep = sleep
        self.metrics = metrics
        self.logger = logger or get_logger("CodeMailer.retry")

    async def _attempt(self, message: EmailMessage) -> SendResult:
        try:
            return await self.transport.send(message)
        except Exception as exc:
            return SendResult(ok=False, error=exc)

    async def send_with_retry(self, message: EmailMessage) -> RetryResult:
        """Deliver ``message`` or give up after ``max_attempts`` failures."""
        last_error: BaseException | None = None
        for attempt in range(self.max_attempts):
            result = await self._attempt(message)
            if self.metrics is not None:
                self.metrics.inc_attempt("foreground", result.ok)
            if result.ok:
                return RetryResult(ok=True, attempts=attempt + 1, info=result.info)
            last_error = result.error
            if attempt + 1 >= self.max_attempts:
                break
            delay = calculate_retry_delay(attempt, self.delays)
            self.logger.warning(
                "Send to %s failed (attempt %d/%d): %s - retrying in %.1fs",
                message.get("To"),
                attempt + 1,
                self.max_attempts,
                last_error or "unknown error",
                delay,
            )
            await self.sleep(delay)
        return RetryResult(ok=False, attempts=self.max_attempts, error=last_error)
