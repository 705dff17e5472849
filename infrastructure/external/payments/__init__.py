"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from .monobank_client import MonobankClient
from .signature import CryptographySignatureVerifier, load_verification_key, verify_signature


def get_payment_gateway(provider: Optional[str] = None) -> MonobankClient:
    name = (provider or "monobank").lower()
    if name in {"monobank", "mono", "plata"}:
        return MonobankClient()
    raise ValueError(f"Unsupported payment provider: {name}")


__all__ = [
    "MonobankClient",
    "CryptographySignatureVerifier",
    "load_verification_key",
    "verify_signature",
    "get_payment_gateway",
]
