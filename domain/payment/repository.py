"""
账本仓储接口 - 定义对账引擎依赖的数据访问抽象
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from .entity import Invoice, Transaction


class LedgerRepository(ABC):
    """账本存储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def load_or_create_transaction(self, transaction_id: int) -> Transaction:
        """加载交易记录（实现方应加行锁），不存在时创建 pending 记录"""
        pass

    @abstractmethod
    async def find_invoice_by_reference(self, reference: str) -> Optional[Invoice]:
        """根据发票哈希查找发票；多条匹配时抛出 InvoiceReferenceAmbiguous"""
        pass

    @abstractmethod
    async def store(self, transaction: Transaction) -> Transaction:
        """保存交易记录"""
        pass

    @abstractmethod
    async def credit_client_funds(
        self,
        client_id: int,
        amount: Decimal,
        description: str,
        metadata: dict,
    ) -> None:
        """为客户余额入账"""
        pass

    @abstractmethod
    async def settle_invoice_with_available_credit(self, invoice: Invoice) -> bool:
        """使用客户可用余额支付发票，返回是否已结清"""
        pass
