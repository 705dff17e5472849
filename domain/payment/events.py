"""
Transaction domain events.

Dataclass events record ledger-relevant facts for downstream handling
(e.g., logging, projections). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid


@dataclass
class TransactionEvent:
    transaction_id: int
    provider: str
    provider_ref: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TransactionSucceeded(TransactionEvent):
    amount: Decimal = Decimal("0")
    invoice_id: Optional[int] = None
    invoice_settled: bool = False


@dataclass
class TransactionFailed(TransactionEvent):
    reason: Optional[str] = None


@dataclass
class TransactionRefunded(TransactionEvent):
    amount: Decimal = Decimal("0")
