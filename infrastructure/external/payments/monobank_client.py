"""
Monobank (Plata acquiring) adapter.

Only the merchant public key endpoint is used here; the key verifies the
X-Sign header of invoice status webhooks.
"""
from __future__ import annotations

from typing import Optional

import httpx

from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError
from core.settings import payment_settings


class MonobankClient(BasePaymentClient):
    provider = "monobank"

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            timeouts=payment_settings.timeouts,
            retry=payment_settings.retry,
            transport=transport,
        )
        cfg = payment_settings.monobank
        self._token = token or cfg.token()
        if not self._token:
            mode = "test" if cfg.test_mode else "live"
            raise RuntimeError(f"MONOBANK configuration incomplete: {mode} X-Token missing")
        self._api_base = (api_base or cfg.api_base).rstrip("/")
        self._pubkey_path = cfg.pubkey_path

    async def fetch_public_key(self) -> str:
        """Return the base64-encoded PEM public key published by Monobank."""
        data = await self._request_json(
            "GET",
            f"{self._api_base}{self._pubkey_path}",
            headers={"X-Token": self._token},
        )
        key = data.get("key")
        if not isinstance(key, str) or not key.strip():
            raise PaymentProviderError("Public key missing in provider response", provider=self.provider)
        self._log("payment_pubkey_fetched")
        return key.strip()
