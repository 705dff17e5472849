"""
Payment DTOs used at application boundaries.

The webhook payload travels through three types:

- ``SignedPayload``: raw bytes + signature header, parsed but untrusted.
- ``VerifiedPayload``: only obtainable from ``SignedPayload.verify``.
- ``MonobankNotification``: typed fields, only buildable from a VerifiedPayload.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from domain.payment.exceptions import MalformedBodyError, MissingFieldsError

if TYPE_CHECKING:
    from application.ports.payment_gateway import SignatureVerifier


_PEM_PREFIX = b"-----BEGIN"


@dataclass(frozen=True)
class KeyMaterial:
    """Provider public key (PEM) and the clock reading at fetch time."""

    pem: bytes
    fetched_at: float

    @classmethod
    def from_blob(cls, blob: str, *, fetched_at: float) -> "KeyMaterial":
        """Decode the provider's base64-of-PEM key blob."""
        try:
            pem = base64.b64decode(blob.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("public key blob is not valid base64") from exc
        if not pem.lstrip().startswith(_PEM_PREFIX):
            raise ValueError("public key blob does not contain a PEM document")
        return cls(pem=pem, fetched_at=fetched_at)

    def __repr__(self) -> str:
        return f"KeyMaterial(fetched_at={self.fetched_at!r}, size={len(self.pem)})"


_VERIFIED = object()


class VerifiedPayload:
    """Webhook body whose signature has been checked against the provider key."""

    __slots__ = ("raw", "document")

    def __init__(self, raw: bytes, document: dict[str, Any], *, _token: object = None) -> None:
        if _token is not _VERIFIED:
            raise TypeError("VerifiedPayload is only produced by SignedPayload.verify()")
        self.raw = raw
        self.document = document


@dataclass(frozen=True)
class SignedPayload:
    raw: bytes
    signature_header: str
    document: dict[str, Any]

    @classmethod
    def parse(cls, raw: bytes, signature_header: str) -> "SignedPayload":
        if not raw or not raw.strip():
            raise MalformedBodyError("empty body")
        try:
            document = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedBodyError("invalid JSON") from exc
        if not isinstance(document, dict):
            raise MalformedBodyError("JSON document is not an object")
        return cls(raw=raw, signature_header=signature_header, document=document)

    def signature(self) -> Optional[bytes]:
        try:
            return base64.b64decode(self.signature_header.strip(), validate=True)
        except (binascii.Error, ValueError):
            return None

    def correlation(self) -> dict[str, str]:
        """Untrusted identifiers for log context only."""
        ctx = {}
        for source, name in (("reference", "reference"), ("invoiceId", "provider_txn_id")):
            value = self.document.get(source)
            if isinstance(value, str):
                ctx[name] = value[:64]
        return ctx

    def verify(self, verifier: "SignatureVerifier", key: KeyMaterial) -> Optional[VerifiedPayload]:
        signature = self.signature()
        if not signature:
            return None
        # Signature covers the exact bytes received, never a re-serialized form.
        if not verifier.verify(self.raw, signature, key):
            return None
        return VerifiedPayload(self.raw, self.document, _token=_VERIFIED)


class MonobankNotification(BaseModel):
    """Fields of a Monobank invoice status webhook."""

    invoice_id: StrictStr = Field(alias="invoiceId", min_length=1)
    status: StrictStr = Field(min_length=1)
    reference: StrictStr = Field(min_length=1)
    amount: StrictInt = Field(ge=0)
    ccy: StrictInt
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @classmethod
    def from_verified(cls, payload: VerifiedPayload) -> "MonobankNotification":
        if not isinstance(payload, VerifiedPayload):
            raise TypeError("notification fields may only be read from a VerifiedPayload")
        doc = payload.document
        amount = doc.get("finalAmount")
        if amount is None:
            amount = doc.get("amount")
        data = {
            "invoiceId": doc.get("invoiceId"),
            "status": doc.get("status"),
            "reference": doc.get("reference"),
            "amount": amount,
            "ccy": doc.get("ccy"),
            "failureReason": doc.get("failureReason") if isinstance(doc.get("failureReason"), str) else None,
        }
        missing = [name for name, value in data.items() if value is None and name != "failureReason"]
        if missing:
            raise MissingFieldsError(missing)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise MissingFieldsError(fields) from exc


class WebhookAck(BaseModel):
    transaction_id: int
    status: str
    previous_status: str
    credited: bool = False
    invoice_settled: bool = False
    amount: Optional[Decimal] = None
