from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.services.public_key_cache import PublicKeyCache
from application.services.reconciliation_service import ReconciliationService
from domain.payment.entity import InvoiceStatus, TransactionStatus
from domain.payment.exceptions import InvoiceReferenceAmbiguous
from infrastructure.external.payments.signature import CryptographySignatureVerifier
from infrastructure.models import Base, ClientBalanceModel, ClientModel, InvoiceModel, TransactionModel
from infrastructure.repositories.ledger_repository import SQLAlchemyLedgerRepository
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

from webhook_fakes import webhook_body


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with factory() as session:
        session.add(ClientModel(id=7, name="Acme", balance=Decimal("0")))
        session.add(InvoiceModel(id=11, hash="INV-1", client_id=7, total=Decimal("42.00")))
        await session.commit()
    yield factory
    await engine.dispose()


@pytest.fixture
def sql_service(session_factory, fetcher) -> ReconciliationService:
    return ReconciliationService(
        uow_factory=lambda: SQLAlchemyUnitOfWork(session_factory=session_factory),
        key_cache=PublicKeyCache(fetcher.fetch_public_key),
        verifier=CryptographySignatureVerifier(),
    )


@pytest.mark.asyncio
async def test_success_persists_transaction_credit_and_settlement(sql_service, session_factory, signing_key):
    body = webhook_body()
    ack = await sql_service.handle(body, signing_key.sign(body), transaction_id=501, remote_ip="203.0.113.9")
    assert ack.credited and ack.invoice_settled

    async with session_factory() as session:
        tx = await session.get(TransactionModel, 501)
        assert tx.status == "succeeded"
        assert tx.amount == Decimal("42.00")
        assert tx.currency == "UAH"
        assert tx.txn_id == "p2_9ZgpZVsl3"
        assert tx.invoice_id == 11
        assert tx.ip == "203.0.113.9"

        client = await session.get(ClientModel, 7)
        assert client.balance == Decimal("0")

        invoice = await session.get(InvoiceModel, 11)
        assert invoice.status == "paid"
        assert invoice.paid_at is not None

        entries = (await session.execute(select(ClientBalanceModel).order_by(ClientBalanceModel.id))).scalars().all()
        assert [(e.type, e.amount) for e in entries] == [
            ("transaction", Decimal("42.00")),
            ("invoice", Decimal("-42.00")),
        ]
        assert entries[0].rel_id == 501
        assert entries[0].description == "Plata transaction p2_9ZgpZVsl3"


@pytest.mark.asyncio
async def test_redelivery_writes_no_second_credit(sql_service, session_factory, signing_key):
    body = webhook_body()
    await sql_service.handle(body, signing_key.sign(body), transaction_id=501)
    second = await sql_service.handle(body, signing_key.sign(body), transaction_id=501)
    assert second.credited is False

    async with session_factory() as session:
        entries = (await session.execute(select(ClientBalanceModel))).scalars().all()
        assert len(entries) == 2


@pytest.mark.asyncio
async def test_load_or_create_starts_pending(session_factory):
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        tx = await uow.ledger.load_or_create_transaction(900)
        assert tx.status is TransactionStatus.PENDING
        assert tx.type == "Payment"

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        again = await uow.ledger.load_or_create_transaction(900)
        assert again.id == 900


@pytest.mark.asyncio
async def test_rollback_discards_writes(session_factory):
    with pytest.raises(RuntimeError):
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            await uow.ledger.load_or_create_transaction(901)
            raise RuntimeError("boom")

    async with session_factory() as session:
        assert await session.get(TransactionModel, 901) is None


@pytest.mark.asyncio
async def test_ambiguous_reference_raises(session_factory):
    async with session_factory() as session:
        session.add(InvoiceModel(id=12, hash="INV-1", client_id=7, total=Decimal("1.00")))
        await session.commit()

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        with pytest.raises(InvoiceReferenceAmbiguous):
            await uow.ledger.find_invoice_by_reference("INV-1")
        assert await uow.ledger.find_invoice_by_reference("missing") is None


@pytest.mark.asyncio
async def test_settlement_requires_sufficient_credit(session_factory):
    async with session_factory() as session:
        repo = SQLAlchemyLedgerRepository(session)
        invoice = await repo.find_invoice_by_reference("INV-1")
        await repo.credit_client_funds(7, Decimal("10.00"), "partial", {"type": "transaction", "rel_id": 1})
        assert await repo.settle_invoice_with_available_credit(invoice) is False

        await repo.credit_client_funds(7, Decimal("32.00"), "rest", {"type": "transaction", "rel_id": 2})
        assert await repo.settle_invoice_with_available_credit(invoice) is True
        assert invoice.status is InvoiceStatus.PAID
        assert await repo.settle_invoice_with_available_credit(invoice) is False
