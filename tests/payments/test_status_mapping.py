from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import (
    Transaction,
    TransactionStatus,
    currency_for,
    resolve_transition,
    to_major_units,
)
from domain.payment.service import map_provider_status


@pytest.mark.parametrize(
    "provider_status, expected",
    [
        ("success", TransactionStatus.SUCCEEDED),
        ("failure", TransactionStatus.FAILED),
        ("expired", TransactionStatus.FAILED),
        ("error", TransactionStatus.FAILED),
        ("reversed", TransactionStatus.REFUNDED),
        ("created", TransactionStatus.PENDING),
        ("processing", TransactionStatus.PENDING),
        ("hold", TransactionStatus.PENDING),
        ("reversal", TransactionStatus.REFUNDED),
    ],
)
def test_monobank_status_mapping(provider_status, expected):
    assert map_provider_status(provider_status) is expected


def test_unknown_status_maps_to_pending():
    assert map_provider_status("something_new") is TransactionStatus.PENDING
    assert map_provider_status("") is TransactionStatus.PENDING
    assert map_provider_status("SUCCESS") is TransactionStatus.PENDING


def test_success_is_not_regressed_by_late_notifications():
    assert resolve_transition(TransactionStatus.SUCCEEDED, TransactionStatus.PENDING) is TransactionStatus.SUCCEEDED
    assert resolve_transition(TransactionStatus.SUCCEEDED, TransactionStatus.FAILED) is TransactionStatus.SUCCEEDED
    assert resolve_transition(TransactionStatus.SUCCEEDED, TransactionStatus.REFUNDED) is TransactionStatus.REFUNDED


def test_refunded_is_terminal():
    for incoming in TransactionStatus:
        assert resolve_transition(TransactionStatus.REFUNDED, incoming) is TransactionStatus.REFUNDED


def test_pending_and_failed_follow_incoming():
    assert resolve_transition(TransactionStatus.PENDING, TransactionStatus.SUCCEEDED) is TransactionStatus.SUCCEEDED
    assert resolve_transition(TransactionStatus.FAILED, TransactionStatus.SUCCEEDED) is TransactionStatus.SUCCEEDED
    assert resolve_transition(TransactionStatus.PENDING, TransactionStatus.FAILED) is TransactionStatus.FAILED


def test_minor_units_conversion():
    assert to_major_units(4200, 980) == Decimal("42.00")
    assert to_major_units(1, 980) == Decimal("0.01")
    assert to_major_units(0, 980) == Decimal("0.00")
    assert str(to_major_units(123456, 980)) == "1234.56"


def test_unsupported_currency():
    assert currency_for(980) == "UAH"
    assert currency_for(840) is None
    with pytest.raises(DomainValidationException):
        to_major_units(100, 840)


def test_apply_provider_update_returns_previous_status():
    tx = Transaction(id=5)
    previous = tx.apply_provider_update(
        invoice_id=11,
        txn_id="p2_x",
        amount=Decimal("42.00"),
        currency="UAH",
        provider_status="success",
        status=TransactionStatus.SUCCEEDED,
        ip="10.0.0.1",
    )
    assert previous is TransactionStatus.PENDING
    assert tx.status is TransactionStatus.SUCCEEDED
    assert tx.txn_status == "success"
    assert tx.type == "Payment"
    assert tx.updated_at is not None and tx.updated_at.tzinfo is not None


def test_negative_amount_rejected():
    with pytest.raises(DomainValidationException):
        Transaction(id=1, amount=Decimal("-1"))
