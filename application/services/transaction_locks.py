"""
In-process per-transaction locks.

Serializes concurrent deliveries for the same transaction id inside one event
loop. Multi-worker deployments should use the Redis-backed locker instead
(infrastructure.external.cache.locks).
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class InProcessTransactionLocks:
    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, transaction_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(transaction_id, asyncio.Lock())
        self._holders[transaction_id] = self._holders.get(transaction_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[transaction_id] -= 1
            if self._holders[transaction_id] == 0:
                del self._holders[transaction_id]
                del self._locks[transaction_id]

    def __len__(self) -> int:
        return len(self._locks)
