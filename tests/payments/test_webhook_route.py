import httpx
import pytest

from api.dependencies import get_reconciliation_service
from core.settings import payment_settings
from main import app

from webhook_fakes import webhook_body


WEBHOOK_PATH = "/api/v1/payments/webhooks/monobank/{}"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_reconciliation_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    yield httpx.AsyncClient(transport=transport, base_url="http://testserver")
    app.dependency_overrides.clear()


def test_webhook_route_registered():
    routes = {r.path for r in app.routes}
    assert "/api/v1/payments/webhooks/monobank/{transaction_id}" in routes
    assert "/health" in routes


@pytest.mark.asyncio
async def test_signed_webhook_is_acknowledged(client, signing_key, ledger):
    body = webhook_body()
    async with client:
        resp = await client.post(
            WEBHOOK_PATH.format(501),
            content=body,
            headers={"X-Sign": signing_key.sign(body), "Content-Type": "application/json"},
        )
    assert resp.status_code == 200
    assert resp.text == "OK"
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.headers.get("X-Request-ID")
    assert len(ledger.credits) == 1


@pytest.mark.asyncio
async def test_redelivery_is_acknowledged_without_second_credit(client, signing_key, ledger):
    body = webhook_body()
    headers = {"X-Sign": signing_key.sign(body)}
    async with client:
        first = await client.post(WEBHOOK_PATH.format(501), content=body, headers=headers)
        second = await client.post(WEBHOOK_PATH.format(501), content=body, headers=headers)
    assert first.status_code == second.status_code == 200
    assert len(ledger.credits) == 1


@pytest.mark.asyncio
async def test_missing_signature_is_400(client):
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=webhook_body())
    assert resp.status_code == 400
    payload = resp.json()
    assert payload["code"] == 61000
    assert payload["error"]["type"] == "MissingSignature"
    assert payload["error"]["retryable"] is False


@pytest.mark.asyncio
async def test_bad_signature_is_401(client, signing_key, ledger):
    body = webhook_body()
    async with client:
        resp = await client.post(
            WEBHOOK_PATH.format(501),
            content=webhook_body(finalAmount=1),
            headers={"X-Sign": signing_key.sign(body)},
        )
    assert resp.status_code == 401
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_unknown_reference_is_404(client, signing_key):
    body = webhook_body(reference="NOPE")
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=body, headers={"X-Sign": signing_key.sign(body)})
    assert resp.status_code == 404
    assert resp.json()["error"]["details"]["reference"] == "NOPE"


@pytest.mark.asyncio
async def test_unsupported_currency_is_422(client, signing_key):
    body = webhook_body(ccy=978)
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=body, headers={"X-Sign": signing_key.sign(body)})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ledger_failure_is_500(client, signing_key, ledger):
    ledger.fail_on = "store"
    body = webhook_body()
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=body, headers={"X-Sign": signing_key.sign(body)})
    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["type"] == "LedgerWriteFailed"
    assert error["retryable"] is True


@pytest.mark.asyncio
async def test_source_outside_allowlist_is_403(client, signing_key, ledger, monkeypatch):
    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["10.0.0.0/8"])
    body = webhook_body()
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=body, headers={"X-Sign": signing_key.sign(body)})
    assert resp.status_code == 403
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_allowlisted_source_is_processed(client, signing_key, monkeypatch):
    monkeypatch.setattr(payment_settings.webhook, "ip_allowlist", ["127.0.0.1", "not-an-ip"])
    body = webhook_body()
    async with client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=body, headers={"X-Sign": signing_key.sign(body)})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_non_numeric_transaction_id_is_422(client):
    async with client:
        resp = await client.post(WEBHOOK_PATH.format("abc"), content=webhook_body(), headers={"X-Sign": "c2ln"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unconfigured_service_is_503():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        resp = await client.post(WEBHOOK_PATH.format(501), content=webhook_body(), headers={"X-Sign": "c2ln"})
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_health():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_get_on_webhook_is_405_envelope(client):
    async with client:
        resp = await client.get(WEBHOOK_PATH.format(501))
    assert resp.status_code == 405
    assert resp.json()["code"] == 10005


@pytest.mark.asyncio
async def test_request_id_is_echoed_only_when_safe(client):
    async with client:
        kept = await client.get("/", headers={"X-Request-ID": "mono-abc.1"})
        replaced = await client.get("/", headers={"X-Request-ID": "bad id;forged=1"})
    assert kept.headers["X-Request-ID"] == "mono-abc.1"
    assert replaced.headers["X-Request-ID"] != "bad id;forged=1"
    assert len(replaced.headers["X-Request-ID"]) == 32
