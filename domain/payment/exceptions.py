"""
Webhook rejection taxonomy.

Each rejection carries a PaymentCode (mapped to an HTTP status by the global
exception handler) and a ``retryable`` flag telling whether redelivery of the
same notification can succeed without anything being fixed first.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class WebhookRejected(BusinessException):
    """Base class for notifications the reconciliation engine refuses."""

    def __init__(
        self,
        code: int,
        message: str,
        *,
        error_type: str,
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class MissingSignatureError(WebhookRejected):
    def __init__(self, header: str = "X-Sign"):
        super().__init__(
            code=PaymentCode.WEBHOOK_MISSING_SIGNATURE,
            message=f"Missing {header} header",
            error_type="MissingSignature",
            details={"header": header},
        )


class MalformedBodyError(WebhookRejected):
    def __init__(self, reason: str):
        super().__init__(
            code=PaymentCode.WEBHOOK_MALFORMED_BODY,
            message="Webhook body is not a JSON object",
            error_type="MalformedBody",
            details={"reason": reason},
        )


class KeyUnavailableError(WebhookRejected):
    retryable = True

    def __init__(self, reason: str):
        super().__init__(
            code=PaymentCode.WEBHOOK_KEY_UNAVAILABLE,
            message="Provider public key unavailable",
            error_type="KeyUnavailable",
            details={"reason": reason},
        )


class AuthenticationFailedError(WebhookRejected):
    def __init__(self):
        super().__init__(
            code=PaymentCode.WEBHOOK_AUTHENTICATION_FAILED,
            message="Signature verification failed",
            error_type="AuthenticationFailed",
        )


class MissingFieldsError(WebhookRejected):
    def __init__(self, fields: list[str]):
        super().__init__(
            code=PaymentCode.WEBHOOK_MISSING_FIELDS,
            message="Missing required fields",
            error_type="MissingFields",
            details={"fields": fields},
        )


class InvoiceNotFoundError(WebhookRejected):
    def __init__(self, reference: str, *, matches: str = "none"):
        super().__init__(
            code=PaymentCode.WEBHOOK_INVOICE_NOT_FOUND,
            message="Invoice not found",
            error_type="InvoiceNotFound",
            details={"reference": reference, "matches": matches},
            field="reference",
        )


class UnsupportedCurrencyError(WebhookRejected):
    def __init__(self, ccy: int):
        super().__init__(
            code=PaymentCode.WEBHOOK_UNSUPPORTED_CURRENCY,
            message=f"Unsupported currency: {ccy}",
            error_type="UnsupportedCurrency",
            details={"ccy": ccy},
            field="ccy",
        )


class LedgerWriteFailedError(WebhookRejected):
    retryable = True

    def __init__(self, transaction_id: int, reason: str):
        super().__init__(
            code=PaymentCode.WEBHOOK_LEDGER_WRITE_FAILED,
            message="Failed to apply notification to the ledger",
            error_type="LedgerWriteFailed",
            details={"transaction_id": transaction_id, "reason": reason},
        )


class SourceNotAllowedError(WebhookRejected):
    def __init__(self, remote_ip: Optional[str]):
        super().__init__(
            code=PaymentCode.WEBHOOK_SOURCE_NOT_ALLOWED,
            message="Webhook source address not allowed",
            error_type="SourceNotAllowed",
            details={"remote_ip": remote_ip},
        )


class InvoiceReferenceAmbiguous(LookupError):
    """Raised by ledger stores when a reference matches more than one invoice."""

    def __init__(self, reference: str, count: int):
        self.reference = reference
        self.count = count
        super().__init__(f"reference {reference!r} matches {count} invoices")
