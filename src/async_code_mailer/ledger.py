# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""In-memory sliding-window ledger of send attempts.

Each key (a recipient address or a caller network identity) maps to the
timestamps of its recent attempts. Timestamps older than the window are
purged lazily whenever the key is read. Keys are never removed, so memory
grows with the number of distinct keys seen during the process lifetime.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable

Clock = Callable[[], float]


class AttemptLedger:
    """Per-key attempt timestamps guarded by a single asyncio lock.

    Attributes:
        window_seconds: Length of the sliding window.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(self, window_seconds: float = 15 * 60, clock: Clock = time.monotonic):
        self.window_seconds = float(window_seconds)
        self.clock = clock
        self._entries: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    def _purge(self, key: str, now: float) -> Deque[float]:
        """Drop timestamps outside ``[now - window, now]`` and return the rest."""
        entries = self._entries.setdefault(key, deque())
        threshold = now - self.window_seconds
        while entries and entries[0] < threshold:
            entries.popleft()
        return entries

    async def record(self, key: str) -> None:
        """Append the current time to ``key``'s attempts."""
        async with self._lock:
            now = self.clock()
            self._purge(key, now).append(now)

    async def purge_expired(self, key: str) -> list[float]:
        """Return the live attempts of ``key``; expired ones are forgotten."""
        async with self._lock:
            return list(self._purge(key, self.clock()))

    async def admit(self, keys: Iterable[str], max_attempts: int) -> bool:
        """Check every key and record one attempt for each if all pass.

        The check and the recording happen under the same lock, so two
        concurrent callers cannot both slip under the limit.
        """
        keys = list(dict.fromkeys(keys))
        async with self._lock:
            now = self.clock()
            live = [self._purge(key, now) for key in keys]
            if any(len(entries) >= max_attempts for entries in live):
                return False
            for entries in live:
                entries.append(now)
            return True
