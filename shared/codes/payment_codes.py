"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001

    # Webhook rejections (61xxx)
    WEBHOOK_MISSING_SIGNATURE = 61000
    WEBHOOK_MALFORMED_BODY = 61001
    WEBHOOK_KEY_UNAVAILABLE = 61002
    WEBHOOK_AUTHENTICATION_FAILED = 61003
    WEBHOOK_MISSING_FIELDS = 61004
    WEBHOOK_INVOICE_NOT_FOUND = 61005
    WEBHOOK_UNSUPPORTED_CURRENCY = 61006
    WEBHOOK_LEDGER_WRITE_FAILED = 61007
    WEBHOOK_SOURCE_NOT_ALLOWED = 61008


# Provider→internal status mapping. Values outside the table map to "pending".
PROVIDER_STATUS_TO_INTERNAL = {
    "monobank": {
        "success": "succeeded",
        "processing": "pending",
        "hold": "pending",
        "created": "pending",
        "expired": "failed",
        "failure": "failed",
        "error": "failed",
        "reversed": "refunded",
        "reversal": "refunded",
    },
}

DEFAULT_INTERNAL_STATUS = "pending"

# ISO-4217 numeric code -> (alpha code, minor unit exponent)
SUPPORTED_CURRENCIES = {
    980: ("UAH", 2),
}
