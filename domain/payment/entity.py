"""
支付领域实体 - 交易记录与发票
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from shared.codes.payment_codes import SUPPORTED_CURRENCIES


class TransactionStatus(str, Enum):
    """交易状态枚举（与渠道无关）"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def currency_for(ccy: int) -> Optional[str]:
    """ISO-4217 numeric code -> alpha code, None when unsupported."""
    entry = SUPPORTED_CURRENCIES.get(ccy)
    return entry[0] if entry else None


def to_major_units(amount_minor: int, ccy: int) -> Decimal:
    """Convert a minor-unit amount (e.g. kopiyky) into major units."""
    entry = SUPPORTED_CURRENCIES.get(ccy)
    if entry is None:
        raise DomainValidationException(f"Unsupported currency: {ccy}", field="ccy")
    exponent = entry[1]
    quantum = Decimal(1).scaleb(-exponent)
    return (Decimal(amount_minor) / (Decimal(10) ** exponent)).quantize(quantum, rounding=ROUND_HALF_UP)


def resolve_transition(current: TransactionStatus, incoming: TransactionStatus) -> TransactionStatus:
    """
    Canonical status after applying ``incoming`` on top of ``current``.

    业务规则：
    1. refunded 为终态
    2. succeeded 之后迟到的 pending/failed 通知不回退状态
    """
    if current is TransactionStatus.REFUNDED:
        return TransactionStatus.REFUNDED
    if current is TransactionStatus.SUCCEEDED and incoming in (
        TransactionStatus.PENDING,
        TransactionStatus.FAILED,
    ):
        return TransactionStatus.SUCCEEDED
    return incoming


@dataclass
class Invoice:
    """发票实体（由账本存储提供，只读引用 + 结算状态）"""

    id: int
    hash: str
    client_id: int
    total: Decimal
    currency: str = "UAH"
    status: InvoiceStatus = InvoiceStatus.UNPAID
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        self.paid_at = _ensure_utc(self.paid_at)

    @property
    def is_paid(self) -> bool:
        return self.status is InvoiceStatus.PAID


@dataclass
class Transaction:
    """
    交易记录 - 由 webhook 通知驱动

    业务规则：
    1. 只能由对账引擎修改，从不删除
    2. 状态转换遵循 resolve_transition
    3. 金额以主单位（UAH）保存
    """

    id: int
    invoice_id: Optional[int] = None
    txn_id: Optional[str] = None  # 渠道交易ID (invoiceId)
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    txn_status: Optional[str] = None  # 渠道原始状态
    status: TransactionStatus = TransactionStatus.PENDING
    ip: Optional[str] = None
    type: str = "Payment"
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        if self.amount is not None and self.amount < 0:
            raise DomainValidationException(
                f"交易金额不能为负数: {self.amount}",
                field="amount"
            )

    def apply_provider_update(
        self,
        *,
        invoice_id: int,
        txn_id: str,
        amount: Decimal,
        currency: str,
        provider_status: str,
        status: TransactionStatus,
        ip: Optional[str],
        failure_reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> TransactionStatus:
        """Apply a verified provider notification; returns the previous canonical status."""
        previous = self.status
        self.invoice_id = invoice_id
        self.txn_id = txn_id
        self.amount = amount
        self.currency = currency
        self.txn_status = provider_status
        self.status = resolve_transition(previous, status)
        self.ip = ip
        self.type = "Payment"
        if failure_reason:
            self.failure_reason = failure_reason
        self.updated_at = _ensure_utc(at) or datetime.now(timezone.utc)
        return previous
