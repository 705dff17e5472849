"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; env keys look like
``MONOBANK__LIVE_TOKEN`` or ``KEY_CACHE__TTL_SECONDS``.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class KeyCacheSettings(BaseModel):
    ttl_seconds: float = 24 * 3600
    # How long past the freshness window a cached key may still be served when refresh fails.
    # 0 disables stale serving.
    max_stale_seconds: float = 3600
    failure_backoff_seconds: float = 5.0
    min_forced_refresh_seconds: float = 60.0


class WebhookSettings(BaseModel):
    signature_header: str = "X-Sign"
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post webhooks
    lock_timeout_seconds: int = 30
    lock_blocking_timeout_seconds: int = 10


class MonobankSettings(BaseModel):
    api_base: str = "https://api.monobank.ua"
    pubkey_path: str = "/api/merchant/pubkey"
    live_token: Optional[str] = None
    test_token: Optional[str] = None
    test_mode: bool = False

    def token(self) -> Optional[str]:
        return self.test_token if self.test_mode else self.live_token


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    key_cache: KeyCacheSettings = Field(default_factory=KeyCacheSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    monobank: MonobankSettings = Field(default_factory=MonobankSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
