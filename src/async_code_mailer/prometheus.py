# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the code mailer.

All metrics use the ``acm_`` prefix.

Metrics exposed:
    - ``acm_delivered_total``: Requests delivered, labelled by ``mode``
      (``smtp`` or ``simulated``).
    - ``acm_queued_total``: Requests deferred to the failure queue.
    - ``acm_rejected_total``: Requests rejected, labelled by ``reason``.
    - ``acm_send_attempts_total``: Transport attempts, labelled by ``phase``
      (``foreground`` or ``background``) and ``result``.
    - ``acm_requeued_total``: Items pushed back after a failed worker cycle.
    - ``acm_dropped_total``: Items dropped after the background budget.
    - ``acm_queue_size``: Items currently in the failure queue.

Example:
    Scraping the metrics::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class CodeMailerMetrics:
    """Prometheus metrics collector for the delivery pipeline.

    Attributes:
        registry: The CollectorRegistry holding all metrics. A private
            registry per instance keeps tests and multiple services apart.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.delivered = Counter(
            "acm_delivered_total",
            "Delivered confirmation codes",
            ["mode"],
            registry=self.registry,
        )
        self.queued = Counter(
            "acm_queued_total",
            "Requests deferred to the failure queue",
            registry=self.registry,
        )
        self.rejected = Counter(
            "acm_rejected_total",
            "Rejected requests",
            ["reason"],
            registry=self.registry,
        )
        self.attempts = Counter(
            "acm_send_attempts_total",
            "Transport send attempts",
            ["phase", "result"],
            registry=self.registry,
        )
        self.requeued = Counter(
            "acm_requeued_total",
            "Items requeued after a failed background attempt",
            registry=self.registry,
        )
        self.dropped = Counter(
            "acm_dropped_total",
            "Items dropped after exhausting background retries",
            registry=self.registry,
        )
        self.queue_size = Gauge(
            "acm_queue_size",
            "Items waiting in the failure queue",
            registry=self.registry,
        )

    def inc_delivered(self, simulated: bool = False) -> None:
        self.delivered.labels(mode="simulated" if simulated else "smtp").inc()

    def inc_queued(self) -> None:
        self.queued.inc()

    def inc_rejected(self, reason: str) -> None:
        self.rejected.labels(reason=reason or "unknown").inc()

    def inc_attempt(self, phase: str, ok: bool) -> None:
        """Count one transport attempt in ``phase``."""
        self.attempts.labels(phase=phase, result="success" if ok else "failure").inc()

    def inc_requeued(self) -> None:
        self.requeued.inc()

    def inc_dropped(self) -> None:
        self.dropped.inc()

    def set_queue_size(self, value: int) -> None:
        self.queue_size.set(value)

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
