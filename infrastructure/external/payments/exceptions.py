"""
Provider I/O failures, expressed as BusinessException variants.

The key cache treats both as a failed fetch; only the recoverable one is worth
an immediate retry.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class _ProviderException(BusinessException):
    code_value: PaymentCode = PaymentCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.provider = provider
        super().__init__(
            code=self.code_value,
            message=message,
            error_type=type(self).__name__,
            details={"provider": provider, "provider_code": provider_code, **(details or {})},
        )


class PaymentProviderError(_ProviderException):
    """Provider answered, but not with something usable (4xx/5xx, bad JSON, missing key)."""


class PaymentRecoverableError(_ProviderException):
    """Transport-level failure (timeout, connection reset)."""

    code_value = PaymentCode.PROVIDER_RECOVERABLE
    retryable = True
