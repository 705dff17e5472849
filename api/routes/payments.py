"""
Payments API routes.

Receives Monobank invoice status webhooks and hands the raw body to the
reconciliation service. Keep this thin: no signature or ledger details here.
"""
from __future__ import annotations

import ipaddress
from typing import Optional

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import PlainTextResponse

from api.dependencies import get_reconciliation_service
from application.services.reconciliation_service import ReconciliationService
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.payment.exceptions import SourceNotAllowedError


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _source_allowed(remote_ip: Optional[str], allowlist: list[str]) -> bool:
    if not allowlist:
        return True
    if not remote_ip:
        return False
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


@router.post(
    "/webhooks/monobank/{transaction_id}",
    summary="Monobank invoice status webhook",
    response_class=PlainTextResponse,
)
async def monobank_webhook(
    request: Request,
    transaction_id: int = Path(..., ge=1),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    remote_ip = request.client.host if request.client else None
    if not _source_allowed(remote_ip, payment_settings.webhook.ip_allowlist or []):
        logger.warning(
            "payment_webhook_rejected",
            provider=service.provider,
            reason="SourceNotAllowedError",
            transaction_id=transaction_id,
            remote_ip=remote_ip,
        )
        raise SourceNotAllowedError(remote_ip)

    raw_body = await request.body()
    signature = request.headers.get(payment_settings.webhook.signature_header)
    await service.handle(raw_body, signature, transaction_id=transaction_id, remote_ip=remote_ip)
    return PlainTextResponse("OK")
