"""
Monobank webhook 对账服务入口

启动时组装：数据库（开发环境自动建表）、交易锁（有 Redis 用分布式锁，否则进程内锁）、
Monobank 公钥客户端与对账服务。缺少 X-Token 时服务照常启动，但 webhook 返回 503。
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from api.dependencies import build_reconciliation_service
from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments as payments_routes
from application.ports.payment_gateway import TransactionLocker
from application.services.transaction_locks import InProcessTransactionLocks
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from core.settings import payment_settings
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.cache import (
    RedisClient,
    RedisTransactionLocks,
    init_redis_client,
    shutdown_redis_client,
)
from infrastructure.external.payments import MonobankClient, get_payment_gateway


configure_logging()
logger = get_logger(__name__)


async def _connect_redis() -> Optional[RedisClient]:
    if not settings.redis.url:
        return None
    try:
        return await init_redis_client()
    except (RuntimeError, OSError, RedisError) as exc:
        logger.error("redis_cache_init_failed", error=str(exc))
        return None


def _transaction_locks(cache: Optional[RedisClient]) -> TransactionLocker:
    if cache is None:
        return InProcessTransactionLocks()
    return RedisTransactionLocks(
        cache,
        timeout=payment_settings.webhook.lock_timeout_seconds,
        blocking_timeout=payment_settings.webhook.lock_blocking_timeout_seconds,
    )


def _monobank_gateway() -> Optional[MonobankClient]:
    try:
        return get_payment_gateway("monobank")
    except RuntimeError as exc:
        logger.error("payment_gateway_init_failed", provider="monobank", error=str(exc))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", mode="create_all")
    else:
        logger.info("database_migrations_required", hint="alembic upgrade head")

    cache = await _connect_redis()
    app.state.redis = cache

    gateway = _monobank_gateway()
    if gateway is not None:
        app.state.reconciliation_service = build_reconciliation_service(
            fetcher=gateway, locks=_transaction_locks(cache)
        )
        logger.info(
            "reconciliation_service_initialized",
            provider=gateway.provider,
            distributed_locks=cache is not None,
            test_mode=payment_settings.monobank.test_mode,
        )

    yield

    if gateway is not None:
        await gateway.aclose()
    await shutdown_redis_client()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Monobank webhook 对账服务",
)

# 后添加的在外层：RequestID 先绑定上下文，访问日志才能带上 request_id
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(data={"name": settings.PROJECT_NAME, "version": settings.VERSION})


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """对账服务是否可用；配置了 Redis 时附带其连通性"""
    cache = getattr(request.app.state, "redis", None)
    return success_response(
        data={
            "status": "healthy",
            "reconciliation": getattr(request.app.state, "reconciliation_service", None) is not None,
            "redis": await cache.health_check() if cache is not None else None,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
