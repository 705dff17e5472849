"""
Redis-backed per-transaction locks for multi-worker deployments.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from .redis_client import RedisClient


class RedisTransactionLocks:
    def __init__(self, cache: RedisClient, *, timeout: int = 30, blocking_timeout: int = 10) -> None:
        self._cache = cache
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, transaction_id: int) -> AsyncIterator[None]:
        async with self._cache.lock(
            f"transaction:{transaction_id}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        ):
            yield
