"""
Redis 客户端：仅提供命名空间隔离的分布式锁与健康检查

多 worker 部署时用于跨进程串行化同一交易的 webhook 处理；
账本数据本身不经过 Redis。
"""
from __future__ import annotations

import asyncio
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis import asyncio as aioredis
from redis.exceptions import LockError, RedisError

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


class LockNotAcquired(TimeoutError):
    def __init__(self, key: str):
        super().__init__(f"获取锁失败: {key}")
        self.key = key


class RedisClient:
    def __init__(self, client: aioredis.Redis, namespace: str = ""):
        self._client = client
        self._prefix = f"{namespace.strip(':')}:" if namespace.strip(":") else ""

    def lock_key(self, name: str) -> str:
        return f"lock:{self._prefix}{name}"

    @asynccontextmanager
    async def lock(self, name: str, timeout: int = 10, blocking_timeout: int = 5) -> AsyncIterator[None]:
        """
        持有 ``timeout`` 秒后自动过期的锁；``blocking_timeout`` 秒内拿不到则抛 LockNotAcquired。

        只有成功获取后才会尝试释放。
        """
        key = self.lock_key(name)
        lock = self._client.lock(key, timeout=timeout, blocking_timeout=blocking_timeout, thread_local=False)
        if not await lock.acquire():
            raise LockNotAcquired(key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except (LockError, RedisError) as e:
                # 锁已过期（或被他人接管）；账本写入已在数据库事务中结束
                logger.error("redis_lock_release_failed", key=key, error=str(e))

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


def _keepalive_options() -> dict:
    names = ("TCP_KEEPIDLE", "TCP_KEEPINTVL", "TCP_KEEPCNT")
    if not all(hasattr(socket, n) for n in names):
        return {}
    return dict(zip((getattr(socket, n) for n in names), (1, 1, 3)))


_instance: Optional[RedisClient] = None
_init_lock = asyncio.Lock()


async def init_redis_client() -> RedisClient:
    """创建并 ping 全局客户端；重复调用返回同一实例"""
    global _instance

    if _instance is not None:
        return _instance
    async with _init_lock:
        if _instance is not None:
            return _instance
        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis客户端")

        raw = aioredis.from_url(
            settings.redis.url,
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_keepalive=True,
            socket_keepalive_options=_keepalive_options(),
        )
        try:
            await raw.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_init_failed", error=str(e))
            await raw.aclose()
            raise

        _instance = RedisClient(raw, namespace=settings.redis.namespace)
        logger.info("redis_initialized", namespace=settings.redis.namespace)
        return _instance


async def shutdown_redis_client() -> None:
    global _instance

    if _instance is None:
        return
    try:
        await _instance.aclose()
        logger.info("redis_closed")
    except RedisError as e:
        logger.error("redis_close_failed", error=str(e))
    finally:
        _instance = None


__all__ = [
    "RedisClient",
    "LockNotAcquired",
    "init_redis_client",
    "shutdown_redis_client",
]
