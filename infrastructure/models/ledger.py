"""
账本数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey
)
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClientModel(Base):
    """客户（余额持有者）"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=True, comment="客户名称")
    balance = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="可用余额")
    currency = Column(String(3), nullable=False, default="UAH", comment="货币代码 ISO-4217")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<ClientModel(id={self.id}, balance={self.balance})>"


class ClientBalanceModel(Base):
    """
    余额流水 - 每次入账/扣款一条记录

    正数为入账（webhook 成功），负数为用余额支付发票
    """
    __tablename__ = "client_balances"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="客户ID"
    )
    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="变动金额")
    description = Column(String(255), nullable=False, comment="流水描述")
    type = Column(String(50), nullable=False, default="transaction", comment="流水类型: transaction/invoice")
    rel_id = Column(Integer, nullable=True, index=True, comment="关联交易/发票ID")
    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_client_balances_type_rel", "type", "rel_id"),
    )

    def __repr__(self):
        return (
            f"<ClientBalanceModel(id={self.id}, client_id={self.client_id}, "
            f"amount={self.amount}, type='{self.type}')>"
        )


class InvoiceModel(Base):
    """发票 - webhook 的 reference 字段对应 hash 列"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    hash = Column(String(100), nullable=False, index=True, comment="发票哈希（支付 reference）")
    client_id = Column(
        Integer,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="客户ID"
    )
    total = Column(Numeric(precision=15, scale=2), nullable=False, comment="应付金额")
    currency = Column(String(3), nullable=False, default="UAH", comment="货币代码")
    status = Column(String(20), nullable=False, default="unpaid", index=True, comment="发票状态: unpaid/paid")
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<InvoiceModel(id={self.id}, hash='{self.hash}', status='{self.status}')>"


class TransactionModel(Base):
    """
    交易记录 - 由 Monobank webhook 更新，从不删除
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="关联发票ID"
    )
    txn_id = Column(String(200), nullable=True, index=True, comment="渠道交易ID (invoiceId)")
    amount = Column(Numeric(precision=15, scale=2), nullable=True, comment="交易金额（主单位）")
    currency = Column(String(3), nullable=True, comment="货币代码")
    txn_status = Column(String(50), nullable=True, comment="渠道原始状态")
    status = Column(
        String(50),
        nullable=False,
        default="pending",
        index=True,
        comment="交易状态: pending/succeeded/failed/refunded"
    )
    ip = Column(String(64), nullable=True, comment="通知来源IP")
    type = Column(String(50), nullable=False, default="Payment", comment="交易类型")
    failure_reason = Column(Text, nullable=True, comment="失败原因")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_transactions_txn_id_status", "txn_id", "status"),
    )

    def __repr__(self):
        return (
            f"<TransactionModel(id={self.id}, txn_id='{self.txn_id}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
