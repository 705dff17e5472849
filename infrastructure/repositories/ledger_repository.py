"""
账本仓储实现 - 使用SQLAlchemy实现数据访问

交易行在读取时加 FOR UPDATE 行锁（SQLite 下忽略），
同一 Unit of Work 内完成交易更新、入账与发票结算。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.payment.entity import Invoice, InvoiceStatus, Transaction, TransactionStatus
from domain.payment.exceptions import InvoiceReferenceAmbiguous
from domain.payment.repository import LedgerRepository
from infrastructure.models.ledger import (
    ClientBalanceModel,
    ClientModel,
    InvoiceModel,
    TransactionModel,
)


logger = get_logger(__name__)


class SQLAlchemyLedgerRepository(LedgerRepository):
    """账本仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_transaction(model: TransactionModel) -> Transaction:
        """将数据库模型转换为领域实体"""
        return Transaction(
            id=model.id,
            invoice_id=model.invoice_id,
            txn_id=model.txn_id,
            amount=model.amount,
            currency=model.currency,
            txn_status=model.txn_status,
            status=TransactionStatus(model.status),
            ip=model.ip,
            type=model.type,
            failure_reason=model.failure_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_invoice(model: InvoiceModel) -> Invoice:
        return Invoice(
            id=model.id,
            hash=model.hash,
            client_id=model.client_id,
            total=model.total,
            currency=model.currency,
            status=InvoiceStatus(model.status),
            paid_at=model.paid_at,
        )

    async def _locked_transaction(self, transaction_id: int) -> Optional[TransactionModel]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.id == transaction_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def load_or_create_transaction(self, transaction_id: int) -> Transaction:
        """加载交易记录（行锁），不存在时创建 pending 记录"""
        model = await self._locked_transaction(transaction_id)
        if model is None:
            now = datetime.now(timezone.utc)
            model = TransactionModel(
                id=transaction_id,
                status=TransactionStatus.PENDING.value,
                type="Payment",
                created_at=now,
                updated_at=now,
            )
            self.session.add(model)
            await self.session.flush()
            logger.info("ledger_transaction_created", transaction_id=transaction_id)
        return self._to_transaction(model)

    async def find_invoice_by_reference(self, reference: str) -> Optional[Invoice]:
        """根据发票哈希查找发票"""
        result = await self.session.execute(
            select(InvoiceModel).where(InvoiceModel.hash == reference).limit(2)
        )
        models = result.scalars().all()
        if len(models) > 1:
            raise InvoiceReferenceAmbiguous(reference, len(models))
        return self._to_invoice(models[0]) if models else None

    async def store(self, transaction: Transaction) -> Transaction:
        """保存交易记录"""
        model = await self.session.get(TransactionModel, transaction.id)
        if model is None:
            model = TransactionModel(id=transaction.id)
            self.session.add(model)

        model.invoice_id = transaction.invoice_id
        model.txn_id = transaction.txn_id
        model.amount = transaction.amount
        model.currency = transaction.currency
        model.txn_status = transaction.txn_status
        model.status = transaction.status.value
        model.ip = transaction.ip
        model.type = transaction.type
        model.failure_reason = transaction.failure_reason
        if transaction.created_at is not None:
            model.created_at = transaction.created_at
        if transaction.updated_at is not None:
            model.updated_at = transaction.updated_at

        await self.session.flush()
        return self._to_transaction(model)

    async def _locked_client(self, client_id: int) -> ClientModel:
        result = await self.session.execute(
            select(ClientModel).where(ClientModel.id == client_id).with_for_update()
        )
        client = result.scalar_one_or_none()
        if client is None:
            raise LookupError(f"client {client_id} not found")
        return client

    async def credit_client_funds(
        self,
        client_id: int,
        amount: Decimal,
        description: str,
        metadata: dict,
    ) -> None:
        """为客户余额入账，同时写一条流水"""
        client = await self._locked_client(client_id)
        client.balance = (client.balance or Decimal("0")) + amount
        self.session.add(
            ClientBalanceModel(
                client_id=client_id,
                amount=amount,
                description=description,
                type=metadata.get("type", "transaction"),
                rel_id=metadata.get("rel_id"),
                extra_metadata=metadata,
            )
        )
        await self.session.flush()
        logger.info("ledger_client_credited", client_id=client_id, amount=str(amount))

    async def settle_invoice_with_available_credit(self, invoice: Invoice) -> bool:
        """余额足够时支付发票；发票已支付或余额不足返回 False"""
        result = await self.session.execute(
            select(InvoiceModel).where(InvoiceModel.id == invoice.id).with_for_update()
        )
        model = result.scalar_one_or_none()
        if model is None or model.status == InvoiceStatus.PAID.value:
            return False

        client = await self._locked_client(model.client_id)
        balance = client.balance or Decimal("0")
        if balance < model.total:
            logger.info(
                "ledger_invoice_insufficient_credit",
                invoice_id=model.id,
                balance=str(balance),
                total=str(model.total),
            )
            return False

        now = datetime.now(timezone.utc)
        client.balance = balance - model.total
        self.session.add(
            ClientBalanceModel(
                client_id=model.client_id,
                amount=-model.total,
                description=f"Invoice {model.id} payment",
                type="invoice",
                rel_id=model.id,
                extra_metadata={"type": "invoice", "rel_id": model.id, "amount": str(model.total)},
            )
        )
        model.status = InvoiceStatus.PAID.value
        model.paid_at = now
        await self.session.flush()

        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
        logger.info("ledger_invoice_settled", invoice_id=model.id, client_id=model.client_id)
        return True
