# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FIFO of undelivered items awaiting background redelivery.

Request handlers push and the requeue worker pops; both go through one
asyncio lock so no item is lost or handed out twice. The queue is volatile
and starts empty on every process start.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, Optional

from .models import QueuedItem


class FailureQueue:
    """Insertion-ordered queue of :class:`QueuedItem`."""

    def __init__(self):
        self._items: Deque[QueuedItem] = deque()
        self._lock = asyncio.Lock()

    async def push(self, item: QueuedItem) -> int:
        """Append ``item`` at the tail and return the new queue length."""
        async with self._lock:
            self._items.append(item)
            return len(self._items)

    async def pop(self) -> Optional[QueuedItem]:
        """Remove and return the oldest item, or ``None`` when empty."""
        async with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    async def snapshot(self) -> list[QueuedItem]:
        """Copy of the current items, oldest first."""
        async with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
