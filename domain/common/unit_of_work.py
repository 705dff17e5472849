"""Unit of Work 抽象定义

一次 webhook 的全部账本写入（交易行、入账、发票结算）在同一个工作单元内完成：
正常退出提交，异常退出回滚，不存在部分写入。
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.payment.repository import LedgerRepository


class AbstractUnitOfWork(ABC):
    ledger: LedgerRepository

    def __init__(self) -> None:
        self._committed = False
        self.ledger = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
