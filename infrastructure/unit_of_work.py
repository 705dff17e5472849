"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.ledger_repository import SQLAlchemyLedgerRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    一个会话、一个事务

    会话在首次执行语句时自动开启事务（SQLAlchemy 2.0 autobegin），
    仓储内的 ``FOR UPDATE`` 行锁一直持有到 commit/rollback。
    传入外部 ``session`` 时只负责事务，不负责关闭会话。
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
    ) -> None:
        super().__init__()
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self.ledger = SQLAlchemyLedgerRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None
            self.ledger = None  # type: ignore[assignment]

    async def commit(self) -> None:
        await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
