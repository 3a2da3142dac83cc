# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Sliding-window admission control for confirmation-code requests.

A request is admitted only when both its recipient address and the caller's
network identity are under the limit. Attempts are recorded at admission
time rather than after a successful send, so a burst of concurrent requests
for the same key is throttled before any of them finishes sending.

Example:
    Gating a request::

        limiter = RateLimiter(AttemptLedger(window_seconds=900), max_attempts=3)
        if not await limiter.try_admit(recipient, client_ip):
            return DeliveryOutcome.rejected(RejectReason.RATE_LIMITED)
"""

from .ledger import AttemptLedger


class RateLimiter:
    """Per-key limiter built on top of :class:`AttemptLedger`.

    This is a soft anti-abuse control: state lives in memory only and is lost
    on restart.

    Attributes:
        ledger: The attempt ledger holding per-key timestamps.
        max_attempts: Attempts allowed per key within the ledger window.
    """

    def __init__(self, ledger: AttemptLedger, max_attempts: int = 3):
        self.ledger = ledger
        self.max_attempts = max(1, int(max_attempts))

    async def can_send(self, key: str) -> bool:
        """Return ``True`` when ``key`` has fewer live attempts than the limit."""
        return len(await self.ledger.purge_expired(key)) < self.max_attempts

    async def try_admit(self, *keys: str) -> bool:
        """Admit a request only if every key passes, recording each on success.

        Args:
            *keys: The recipient address and the caller identity.

        Returns:
            ``True`` if the request may proceed, ``False`` if any key is over
            the limit (nothing is recorded in that case).
        """
        return await self.ledger.admit(keys, self.max_attempts)

    async def record(self, *keys: str) -> None:
        """Record an attempt for each key without checking the limit."""
        for key in dict.fromkeys(keys):
            await self.ledger.record(key)
