"""
API依赖项 - 组装对账服务（composition root）
"""
from __future__ import annotations

from typing import Callable, Optional

from fastapi import HTTPException, Request, status

from application.ports.payment_gateway import PublicKeyFetcher, SignatureVerifier, TransactionLocker
from application.services.public_key_cache import PublicKeyCache
from application.services.reconciliation_service import ReconciliationService
from core.settings import PaymentSettings, payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.external.payments import (
    CryptographySignatureVerifier,
    get_payment_gateway,
    load_verification_key,
)
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def build_key_cache(fetcher: PublicKeyFetcher, cfg: Optional[PaymentSettings] = None) -> PublicKeyCache:
    cfg = cfg or payment_settings
    return PublicKeyCache(
        fetcher.fetch_public_key,
        ttl_seconds=cfg.key_cache.ttl_seconds,
        max_stale_seconds=cfg.key_cache.max_stale_seconds,
        failure_backoff_seconds=cfg.key_cache.failure_backoff_seconds,
        min_forced_refresh_seconds=cfg.key_cache.min_forced_refresh_seconds,
        validate_key=load_verification_key,
    )


def build_reconciliation_service(
    *,
    fetcher: Optional[PublicKeyFetcher] = None,
    verifier: Optional[SignatureVerifier] = None,
    uow_factory: Callable[[], AbstractUnitOfWork] = SQLAlchemyUnitOfWork,
    locks: Optional[TransactionLocker] = None,
    cfg: Optional[PaymentSettings] = None,
) -> ReconciliationService:
    cfg = cfg or payment_settings
    fetcher = fetcher or get_payment_gateway("monobank")
    return ReconciliationService(
        uow_factory=uow_factory,
        key_cache=build_key_cache(fetcher, cfg),
        verifier=verifier or CryptographySignatureVerifier(),
        locks=locks,
        signature_header=cfg.webhook.signature_header,
    )


async def get_reconciliation_service(request: Request) -> ReconciliationService:
    service = getattr(request.app.state, "reconciliation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reconciliation service not configured",
        )
    return service
