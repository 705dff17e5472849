"""
支付领域服务 - 状态映射与交易入账规则
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .entity import Invoice, Transaction, TransactionStatus
from .events import TransactionFailed, TransactionRefunded, TransactionSucceeded
from .repository import LedgerRepository
from shared.codes.payment_codes import DEFAULT_INTERNAL_STATUS, PROVIDER_STATUS_TO_INTERNAL


PROVIDER = "monobank"


def map_provider_status(provider_status: str, provider: str = PROVIDER) -> TransactionStatus:
    """Provider status token -> canonical status; unknown tokens map to pending."""
    mapping = PROVIDER_STATUS_TO_INTERNAL.get(provider, {})
    return TransactionStatus(mapping.get(provider_status, DEFAULT_INTERNAL_STATUS))


@dataclass
class LedgerOutcome:
    transaction: Transaction
    previous_status: TransactionStatus
    credited: bool = False
    invoice_settled: bool = False


class LedgerDomainService:
    """
    账本领域服务 - 将已验证的渠道通知应用到交易记录

    职责：
    1. 加载或创建交易记录并无条件保存（审计轨迹）
    2. 仅在状态首次进入 succeeded 时入账并结算发票（幂等闸门）
    3. 产生领域事件
    """

    def __init__(self, ledger: LedgerRepository):
        self.ledger = ledger
        self.events: List = []  # 领域事件收集

    async def apply_notification(
        self,
        *,
        transaction_id: int,
        invoice: Invoice,
        provider_txn_id: str,
        amount: Decimal,
        currency: str,
        provider_status: str,
        ip: Optional[str] = None,
        failure_reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> LedgerOutcome:
        tx = await self.ledger.load_or_create_transaction(transaction_id)
        previous = tx.apply_provider_update(
            invoice_id=invoice.id,
            txn_id=provider_txn_id,
            amount=amount,
            currency=currency,
            provider_status=provider_status,
            status=map_provider_status(provider_status),
            ip=ip,
            failure_reason=failure_reason,
            at=at,
        )
        tx = await self.ledger.store(tx)
        outcome = LedgerOutcome(transaction=tx, previous_status=previous)

        if tx.status is TransactionStatus.SUCCEEDED and previous is not TransactionStatus.SUCCEEDED:
            await self.ledger.credit_client_funds(
                invoice.client_id,
                tx.amount,
                f"Plata transaction {provider_txn_id}",
                {"type": "transaction", "rel_id": tx.id, "amount": str(tx.amount)},
            )
            outcome.credited = True
            outcome.invoice_settled = await self.ledger.settle_invoice_with_available_credit(invoice)
            self.events.append(
                TransactionSucceeded(
                    transaction_id=tx.id,
                    provider=PROVIDER,
                    provider_ref=provider_txn_id,
                    amount=tx.amount,
                    invoice_id=invoice.id,
                    invoice_settled=outcome.invoice_settled,
                )
            )
        elif tx.status is not previous:
            if tx.status is TransactionStatus.REFUNDED:
                self.events.append(
                    TransactionRefunded(
                        transaction_id=tx.id,
                        provider=PROVIDER,
                        provider_ref=provider_txn_id,
                        amount=tx.amount,
                    )
                )
            elif tx.status is TransactionStatus.FAILED:
                self.events.append(
                    TransactionFailed(
                        transaction_id=tx.id,
                        provider=PROVIDER,
                        provider_ref=provider_txn_id,
                        reason=failure_reason,
                    )
                )
        return outcome

    def clear_events(self) -> List:
        events, self.events = self.events, []
        return events
