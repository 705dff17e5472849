"""Shared fixtures for Monobank webhook tests."""
from __future__ import annotations

import pytest

from application.services.public_key_cache import PublicKeyCache
from application.services.reconciliation_service import ReconciliationService
from infrastructure.external.payments.signature import CryptographySignatureVerifier, load_verification_key

from webhook_fakes import CountingFetcher, FakeUnitOfWork, InMemoryLedger, SigningKey


@pytest.fixture
def signing_key() -> SigningKey:
    return SigningKey()


@pytest.fixture
def ledger() -> InMemoryLedger:
    ledger = InMemoryLedger()
    ledger.add_invoice(11, "INV-1")
    return ledger


@pytest.fixture
def fetcher(signing_key) -> CountingFetcher:
    return CountingFetcher(signing_key.blob)


@pytest.fixture
def units_of_work() -> list:
    return []


@pytest.fixture
def service(ledger, fetcher, units_of_work) -> ReconciliationService:
    def uow_factory() -> FakeUnitOfWork:
        uow = FakeUnitOfWork(ledger)
        units_of_work.append(uow)
        return uow

    return ReconciliationService(
        uow_factory=uow_factory,
        key_cache=PublicKeyCache(fetcher.fetch_public_key, validate_key=load_verification_key),
        verifier=CryptographySignatureVerifier(),
    )
