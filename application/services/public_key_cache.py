"""
Provider public key cache.

Holds one ``KeyMaterial`` entry with a freshness window. The fetch function
and the clock are injected so tests can drive it deterministically.
The optional ``validate_key`` raises ValueError for PEM documents the
verifier cannot use; such fetches count as failures and keep the old entry.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from application.dtos.payments import KeyMaterial
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.payment.exceptions import KeyUnavailableError


logger = get_logger(__name__)


class PublicKeyCache:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[str]],
        *,
        ttl_seconds: float = 24 * 3600,
        max_stale_seconds: float = 3600,
        failure_backoff_seconds: float = 5.0,
        min_forced_refresh_seconds: float = 60.0,
        validate_key: Optional[Callable[[bytes], object]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._max_stale = max_stale_seconds
        self._failure_backoff = failure_backoff_seconds
        self._min_forced_refresh = min_forced_refresh_seconds
        self._clock = clock
        self._validate_key = validate_key
        self._entry: Optional[KeyMaterial] = None
        self._last_failure_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def entry(self) -> Optional[KeyMaterial]:
        return self._entry

    def _age(self, entry: KeyMaterial) -> float:
        return self._clock() - entry.fetched_at

    def _is_fresh(self, entry: Optional[KeyMaterial]) -> bool:
        return entry is not None and self._age(entry) < self._ttl

    def _needs_fetch(self, entry: Optional[KeyMaterial], force_refresh: bool) -> bool:
        if entry is None:
            return True
        if force_refresh:
            return self._age(entry) >= self._min_forced_refresh
        return not self._is_fresh(entry)

    async def get_key(self, *, force_refresh: bool = False) -> KeyMaterial:
        """Return a usable key, refreshing it when expired (or on forced rotation)."""
        entry = self._entry
        if not self._needs_fetch(entry, force_refresh):
            return entry

        async with self._lock:
            # Another caller may have refreshed while we waited.
            entry = self._entry
            if not self._needs_fetch(entry, force_refresh):
                return entry

            if self._in_failure_backoff():
                return self._fallback(entry, reason="fetch_backoff")

            try:
                blob = await self._fetch()
                material = KeyMaterial.from_blob(blob, fetched_at=self._clock())
                if self._validate_key is not None:
                    self._validate_key(material.pem)
            except (BusinessException, ValueError) as exc:
                self._last_failure_at = self._clock()
                logger.warning(
                    "payment_pubkey_fetch_failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                    has_cached_key=entry is not None,
                )
                return self._fallback(entry, reason="fetch_failed")

            self._entry = material
            self._last_failure_at = None
            logger.info("payment_pubkey_refreshed", forced=force_refresh)
            return material

    def _in_failure_backoff(self) -> bool:
        if self._last_failure_at is None:
            return False
        return self._clock() - self._last_failure_at < self._failure_backoff

    def _fallback(self, entry: Optional[KeyMaterial], *, reason: str) -> KeyMaterial:
        if entry is None:
            raise KeyUnavailableError(reason)
        age = self._age(entry)
        staleness = age - self._ttl
        if staleness <= self._max_stale:
            if staleness > 0:
                logger.warning("payment_pubkey_stale_served", age_seconds=round(age, 3), reason=reason)
            return entry
        raise KeyUnavailableError(f"{reason}; cached key stale for {staleness:.0f}s")
