"""
异步数据库引擎与会话工厂

支持 PostgreSQL（asyncpg，生产）与 SQLite（aiosqlite，本地与测试）。
"""
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _build_async_url(database_url: str) -> str:
    """同步驱动名替换为对应的异步驱动；已指定驱动的 URL 原样返回"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    try:
        return str(url.set(drivername=_ASYNC_DRIVERS[url.drivername]))
    except KeyError:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}. 请使用 postgresql 或 sqlite") from None


def _engine_options(async_url: str) -> dict:
    options = {"echo": settings.database.echo}
    # SQLite 不使用连接池参数
    if not make_url(async_url).drivername.startswith("sqlite"):
        options.update(
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_pre_ping=True,
        )
    return options


_async_url = _build_async_url(settings.database.url)
engine = create_async_engine(_async_url, **_engine_options(_async_url))

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables() -> None:
    """开发环境建表；生产环境使用 Alembic 迁移"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()
