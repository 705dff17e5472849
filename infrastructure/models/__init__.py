"""Infrastructure models package exports."""
from .base import Base, metadata
from .ledger import ClientBalanceModel, ClientModel, InvoiceModel, TransactionModel

__all__ = [
    "Base",
    "metadata",
    "ClientModel",
    "ClientBalanceModel",
    "InvoiceModel",
    "TransactionModel",
]
