from .locks import RedisTransactionLocks
from .redis_client import LockNotAcquired, RedisClient, init_redis_client, shutdown_redis_client


__all__ = [
    "LockNotAcquired",
    "RedisClient",
    "RedisTransactionLocks",
    "init_redis_client",
    "shutdown_redis_client",
]
