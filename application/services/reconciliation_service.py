"""
Application service reconciling Monobank webhooks with the ledger.

Order of operations is fixed: shape check, key lookup, signature check over
the raw bytes, field extraction, then the ledger update inside a
per-transaction lock and a single unit of work. Nothing from the payload is
trusted for side effects before the signature check passes.

Collaborators (key cache, verifier, unit of work factory, locks) are injected
from the composition root (api.dependencies), keeping dependencies one-way.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from application.dtos.payments import (
    KeyMaterial,
    MonobankNotification,
    SignedPayload,
    VerifiedPayload,
    WebhookAck,
)
from application.ports.payment_gateway import SignatureVerifier, TransactionLocker
from application.services.public_key_cache import PublicKeyCache
from application.services.transaction_locks import InProcessTransactionLocks
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import Invoice, currency_for, to_major_units
from domain.payment.exceptions import (
    AuthenticationFailedError,
    InvoiceNotFoundError,
    InvoiceReferenceAmbiguous,
    KeyUnavailableError,
    LedgerWriteFailedError,
    MissingSignatureError,
    UnsupportedCurrencyError,
    WebhookRejected,
)
from domain.payment.service import PROVIDER, LedgerDomainService


logger = get_logger(__name__)


class ReconciliationService:
    provider = PROVIDER

    def __init__(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        key_cache: PublicKeyCache,
        verifier: SignatureVerifier,
        locks: Optional[TransactionLocker] = None,
        signature_header: str = "X-Sign",
    ) -> None:
        self._uow_factory = uow_factory
        self._key_cache = key_cache
        self._verifier = verifier
        self._locks = locks or InProcessTransactionLocks()
        self._signature_header = signature_header

    async def handle(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        *,
        transaction_id: int,
        remote_ip: Optional[str] = None,
    ) -> WebhookAck:
        context: dict = {"transaction_id": transaction_id}
        try:
            ack = await self._handle(raw_body, signature_header, transaction_id, remote_ip, context)
        except WebhookRejected as exc:
            logger.warning(
                "payment_webhook_rejected",
                provider=self.provider,
                detail=exc.message,
                **exc.log_context(),
                **context,
            )
            raise
        logger.info(
            "payment_webhook_processed",
            provider=self.provider,
            status=ack.status,
            previous_status=ack.previous_status,
            credited=ack.credited,
            invoice_settled=ack.invoice_settled,
            **context,
        )
        return ack

    async def _handle(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        transaction_id: int,
        remote_ip: Optional[str],
        context: dict,
    ) -> WebhookAck:
        if not signature_header or not signature_header.strip():
            raise MissingSignatureError(self._signature_header)

        signed = SignedPayload.parse(raw_body, signature_header)
        context.update(signed.correlation())

        key = await self._key_cache.get_key()
        verified = self._authenticate(signed, key)
        if verified is None:
            # Possible key rotation: retry once with a freshly fetched key.
            try:
                rotated = await self._key_cache.get_key(force_refresh=True)
            except KeyUnavailableError:
                rotated = key
            if rotated is not key:
                verified = self._authenticate(signed, rotated)
        if verified is None:
            raise AuthenticationFailedError()

        notification = MonobankNotification.from_verified(verified)
        context.update(reference=notification.reference, provider_txn_id=notification.invoice_id)

        try:
            async with self._locks.hold(transaction_id):
                async with self._uow_factory() as uow:
                    invoice = await self._resolve_invoice(uow, notification.reference)
                    currency = currency_for(notification.ccy)
                    if currency is None:
                        raise UnsupportedCurrencyError(notification.ccy)
                    amount = to_major_units(notification.amount, notification.ccy)

                    domain_service = LedgerDomainService(uow.ledger)
                    outcome = await domain_service.apply_notification(
                        transaction_id=transaction_id,
                        invoice=invoice,
                        provider_txn_id=notification.invoice_id,
                        amount=amount,
                        currency=currency,
                        provider_status=notification.status,
                        ip=remote_ip,
                        failure_reason=notification.failure_reason,
                        at=datetime.now(timezone.utc),
                    )
        except WebhookRejected:
            raise
        except Exception as exc:
            logger.error(
                "payment_ledger_update_failed",
                provider=self.provider,
                error_type=type(exc).__name__,
                exc_info=True,
                **context,
            )
            raise LedgerWriteFailedError(transaction_id, type(exc).__name__) from exc

        for event in domain_service.clear_events():
            logger.info(
                "payment_domain_event",
                event_type=type(event).__name__,
                event_id=event.event_id,
                **context,
            )

        tx = outcome.transaction
        return WebhookAck(
            transaction_id=tx.id,
            status=tx.status.value,
            previous_status=outcome.previous_status.value,
            credited=outcome.credited,
            invoice_settled=outcome.invoice_settled,
            amount=tx.amount,
        )

    def _authenticate(self, signed: SignedPayload, key: KeyMaterial) -> Optional[VerifiedPayload]:
        return signed.verify(self._verifier, key)

    @staticmethod
    async def _resolve_invoice(uow: AbstractUnitOfWork, reference: str) -> Invoice:
        try:
            invoice = await uow.ledger.find_invoice_by_reference(reference)
        except InvoiceReferenceAmbiguous as exc:
            raise InvoiceNotFoundError(reference, matches="many") from exc
        if invoice is None:
            raise InvoiceNotFoundError(reference)
        return invoice
