from core.logging_config import REDACTED, redact_sensitive
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError


def test_signature_and_token_are_redacted():
    event = redact_sensitive(None, "info", {"event": "x", "signature": "MEUCIQ", "x_token": "secret", "reference": "INV-1"})
    assert event["signature"] == REDACTED
    assert event["x_token"] == REDACTED
    assert event["reference"] == "INV-1"


def test_provider_errors_log_context():
    recoverable = PaymentRecoverableError("timeout", provider="monobank")
    assert recoverable.log_context()["retryable"] is True
    permanent = PaymentProviderError("bad status", provider="monobank", provider_code="500")
    assert permanent.log_context() == {"code": 60000, "error_type": "PaymentProviderError", "retryable": False}
    assert permanent.details == {"provider": "monobank", "provider_code": "500"}
