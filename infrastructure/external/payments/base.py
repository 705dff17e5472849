"""
Shared HTTP plumbing for provider clients.

One lazily created ``httpx.AsyncClient`` per adapter, bounded retries on
transport failures (tenacity), and a single place that turns HTTP outcomes
into PaymentProviderError / PaymentRecoverableError.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentTimeouts
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError


logger = get_logger(__name__)

_RETRYABLE = (httpx.TimeoutException, httpx.TransportError)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        retry: Optional[PaymentRetry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts = timeouts or PaymentTimeouts()
        self._retry_policy = retry or PaymentRetry()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        t = self._timeouts
        return httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        return self._http

    async def aclose(self) -> None:
        http, self._http = self._http, None
        if http is not None:
            await http.aclose()

    def _log_retry(self, retry_state) -> None:
        logger.warning(
            "payment_provider_retry",
            provider=self.provider,
            attempt=retry_state.attempt_number,
            error_type=type(retry_state.outcome.exception()).__name__,
        )

    async def _send(self, method: str, url: str, headers: dict[str, str]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_policy.max + 1),
            wait=wait_exponential(multiplier=self._retry_policy.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type(_RETRYABLE),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                return await self._client().request(method, url, headers=headers)

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Send with retries; return the JSON object body or raise a provider error."""
        try:
            resp = await self._send(method, url, {"Accept": "application/json", **(headers or {})})
        except httpx.TimeoutException as exc:
            raise PaymentRecoverableError(
                f"{self.provider} request timed out", provider=self.provider, details={"url": url}
            ) from exc
        except httpx.TransportError as exc:
            raise PaymentRecoverableError(
                f"{self.provider} transport error: {exc}", provider=self.provider, details={"url": url}
            ) from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.is_error or not isinstance(data, dict):
            raise PaymentProviderError(
                f"{self.provider} API error [{resp.status_code}]",
                provider=self.provider,
                provider_code=str(resp.status_code),
            )
        return data

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)
