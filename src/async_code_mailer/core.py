# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Delivery orchestration for confirmation-code requests.

:class:`CodeMailerCore` is invoked once per inbound request and composes the
rate limiter, the bounded retry sender and the failure queue into one of
three outcomes:

- delivered: the transport accepted the message (or simulation mode);
- queued: foreground attempts were exhausted, the requeue worker takes over;
- rejected: the request was invalid or over the rate limit.

Transport failures never escape :meth:`CodeMailerCore.handle`; they are
retried, queued or, later, dropped by the worker.

Example:
    Building the service from settings::

        core = build_core(load_settings())
        await core.start()
        outcome = await core.handle(
            {"email": "user@example.com", "username": "Ann", "code": "123456"},
            client_id="203.0.113.7",
        )
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from .config import Settings
from .failure_queue import FailureQueue
from .ledger import AttemptLedger
from .logger import get_logger
from .models import (
    REQUIRED_FIELDS,
    DeliveryOutcome,
    DeliveryRequest,
    QueuedItem,
    RejectReason,
)
from .prometheus import CodeMailerMetrics
from .rate_limit import RateLimiter
from .retry import RetrySender
from .transport import Transport, build_confirmation_message, create_transport
from .worker import CycleOutcome, RequeueWorker

UNKNOWN_CLIENT = "unknown"


class CodeMailerCore:
    """Coordinate admission, foreground delivery and deferral.

    All shared state (ledger, failure queue) is owned by the collaborators
    passed in, so several independent instances can coexist in one process.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        rate_limiter: RateLimiter,
        sender: RetrySender,
        queue: FailureQueue,
        worker: RequeueWorker,
        from_address: Optional[str] = None,
        metrics: Optional[CodeMailerMetrics] = None,
        logger=None,
        log_delivery_activity: bool = False,
    ):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.sender = sender
        self.queue = queue
        self.worker = worker
        self.from_address = from_address
        self.metrics = metrics or CodeMailerMetrics()
        self.logger = logger or get_logger("CodeMailer.core")
        self._log_delivery_activity = bool(log_delivery_activity)

    @property
    def simulated(self) -> bool:
        return self.transport.simulated

    # ----------------------------------------------------------------- lifecycle
    async def start(self) -> None:
        """Start the background requeue worker."""
        await self.worker.start()

    async def stop(self) -> None:
        """Stop the background requeue worker."""
        await self.worker.stop()

    async def run_now(self) -> CycleOutcome:
        """Run one requeue cycle immediately."""
        return await self.worker.run_cycle()

    async def status(self) -> dict[str, Any]:
        return {
            "ok": True,
            "simulated": self.simulated,
            "queue_size": len(self.queue),
            "worker_running": self.worker.running,
        }

    # ------------------------------------------------------------------ delivery
    @staticmethod
    def _coerce_request(request: Union[DeliveryRequest, Mapping[str, Any], None]) -> Optional[DeliveryRequest]:
        if isinstance(request, DeliveryRequest):
            return request
        if request is None:
            return DeliveryRequest()
        if not isinstance(request, Mapping):
            return None
        try:
            return DeliveryRequest.model_validate(dict(request))
        except ValidationError:
            return None

    def _reject(self, reason: RejectReason, missing: Optional[list[str]] = None) -> DeliveryOutcome:
        self.metrics.inc_rejected(reason.value)
        return DeliveryOutcome.rejected(reason, missing)

    async def handle(
        self,
        request: Union[DeliveryRequest, Mapping[str, Any], None],
        client_id: Optional[str] = None,
    ) -> DeliveryOutcome:
        """Process one delivery request.

        Args:
            request: A :class:`DeliveryRequest` or the raw payload mapping.
            client_id: Network identity of the caller, rate limited alongside
                the recipient address.

        Returns:
            The :class:`DeliveryOutcome` for the caller.
        """
        parsed = self._coerce_request(request)
        if parsed is None:
            return self._reject(RejectReason.VALIDATION, list(REQUIRED_FIELDS))
        missing = parsed.missing_fields()
        if missing:
            return self._reject(RejectReason.VALIDATION, missing)

        recipient = parsed.recipient or ""
        display_name = parsed.display_name or ""
        code = parsed.code or ""
        client_key = client_id or UNKNOWN_CLIENT

        message = build_confirmation_message(self.from_address, recipient, display_name, code)
        if self.simulated:
            await self.rate_limiter.record(recipient, client_key)
            await self.transport.send(message)
            self.metrics.inc_delivered(simulated=True)
            return DeliveryOutcome.delivered(simulated=True)

        if not await self.rate_limiter.try_admit(recipient, client_key):
            self.logger.info("Rate limit hit for %s (client=%s)", recipient, client_key)
            return self._reject(RejectReason.RATE_LIMITED)

        if self._log_delivery_activity:
            self.logger.info("Attempting delivery to %s (client=%s)", recipient, client_key)
        try:
            result = await self.sender.send_with_retry(message)
        except Exception as exc:
            self.logger.error("Error sending email to %s: %s", recipient, exc)
            return await self._defer(recipient, display_name, code, exc)

        if result.ok:
            self.logger.info("Email sent to %s: %s", recipient, result.info)
            self.metrics.inc_delivered()
            return DeliveryOutcome.delivered()
        self.logger.error(
            "Send to %s failed after %d attempts, queuing for retry: %s",
            recipient,
            result.attempts,
            result.error or "unknown",
        )
        return await self._defer(recipient, display_name, code, result.error)

    async def _defer(
        self, recipient: str, display_name: str, code: str, error: Optional[BaseException]
    ) -> DeliveryOutcome:
        item = QueuedItem(
            recipient=recipient,
            display_name=display_name,
            code=code,
            attempt_count=0,
            last_error=str(error) if error else None,
        )
        size = await self.queue.push(item)
        self.metrics.inc_queued()
        self.metrics.set_queue_size(size)
        return DeliveryOutcome.queued()


def build_core(
    settings: Settings,
    *,
    transport: Optional[Transport] = None,
    metrics: Optional[CodeMailerMetrics] = None,
    sleep=None,
    clock=time.monotonic,
) -> CodeMailerCore:
    """Wire a :class:`CodeMailerCore` from ``settings``.

    ``transport``, ``sleep`` and ``clock`` override the production defaults;
    tests use them to avoid the network and the wall clock.
    """
    metrics = metrics or CodeMailerMetrics()
    transport = transport or create_transport(settings)
    ledger = AttemptLedger(window_seconds=settings.rate_window_seconds, clock=clock)
    rate_limiter = RateLimiter(ledger, max_attempts=settings.rate_max_attempts)
    retry_kwargs: dict[str, Any] = {}
    if sleep is not None:
        retry_kwargs["sleep"] = sleep
    sender = RetrySender(
        transport,
        max_attempts=settings.foreground_attempts,
        delays=settings.retry_delays,
        metrics=metrics,
        **retry_kwargs,
    )
    queue = FailureQueue()
    worker = RequeueWorker(
        queue,
        transport,
        sender=settings.sender,
        retry_limit=settings.background_retry_limit,
        interval=settings.requeue_interval,
        metrics=metrics,
        log_delivery_activity=settings.log_delivery_activity,
    )
    return CodeMailerCore(
        transport=transport,
        rate_limiter=rate_limiter,
        sender=sender,
        queue=queue,
        worker=worker,
        from_address=settings.sender,
        metrics=metrics,
        log_delivery_activity=settings.log_delivery_activity,
    )
