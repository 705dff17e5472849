"""
Payment ports (application/ports) exposing replaceable protocols.

Application depends on these Protocols; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable

from application.dtos.payments import KeyMaterial


@runtime_checkable
class PublicKeyFetcher(Protocol):
    """Retrieves the provider's signing key blob (base64 of PEM).

    Implementations raise a BusinessException subclass on failure.
    """

    provider: str

    async def fetch_public_key(self) -> str: ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """Pure signature check; malformed input yields False, never an exception."""

    def verify(self, raw_payload: bytes, signature: bytes, key: KeyMaterial) -> bool: ...


@runtime_checkable
class TransactionLocker(Protocol):
    """Serializes ledger updates for a single transaction id."""

    def hold(self, transaction_id: int) -> AsyncContextManager[None]: ...
