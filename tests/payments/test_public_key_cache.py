import asyncio
import base64

import pytest

from application.services.public_key_cache import PublicKeyCache
from domain.payment.exceptions import KeyUnavailableError
from infrastructure.external.payments.exceptions import PaymentRecoverableError
from infrastructure.external.payments.signature import load_verification_key

from webhook_fakes import SigningKey


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedFetcher:
    """Returns queued blobs in order; an Exception entry is raised instead."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def _cache(fetch, clock, **kwargs) -> PublicKeyCache:
    params = dict(
        ttl_seconds=100,
        max_stale_seconds=50,
        failure_backoff_seconds=5,
        min_forced_refresh_seconds=10,
        clock=clock,
        validate_key=load_verification_key,
    )
    params.update(kwargs)
    return PublicKeyCache(fetch, **params)


def _outage() -> PaymentRecoverableError:
    return PaymentRecoverableError("monobank request timed out", provider="monobank")


@pytest.mark.asyncio
async def test_fresh_key_is_served_from_cache():
    key = SigningKey()
    fetch = ScriptedFetcher(key.blob)
    clock = FakeClock()
    cache = _cache(fetch, clock)

    first = await cache.get_key()
    clock.advance(99)
    second = await cache.get_key()

    assert first is second
    assert first.pem == key.pem
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_expired_key_is_refetched():
    old, new = SigningKey(), SigningKey()
    fetch = ScriptedFetcher(old.blob, new.blob)
    clock = FakeClock()
    cache = _cache(fetch, clock)

    await cache.get_key()
    clock.advance(100)
    refreshed = await cache.get_key()

    assert refreshed.pem == new.pem
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_no_key_and_fetch_failure_is_key_unavailable():
    fetch = ScriptedFetcher(_outage())
    cache = _cache(fetch, FakeClock())
    with pytest.raises(KeyUnavailableError):
        await cache.get_key()


@pytest.mark.asyncio
async def test_unusable_blob_is_a_fetch_failure():
    fetch = ScriptedFetcher("bm90IGEgcGVt")
    cache = _cache(fetch, FakeClock())
    with pytest.raises(KeyUnavailableError):
        await cache.get_key()
    assert cache.entry is None


@pytest.mark.asyncio
async def test_stale_key_served_within_bound_then_refused():
    key = SigningKey()
    fetch = ScriptedFetcher(key.blob, _outage())
    clock = FakeClock()
    cache = _cache(fetch, clock)
    await cache.get_key()

    clock.advance(120)  # expired 20s ago, inside the 50s stale bound
    stale = await cache.get_key()
    assert stale.pem == key.pem

    clock.advance(40)  # expired 60s ago
    with pytest.raises(KeyUnavailableError):
        await cache.get_key()


@pytest.mark.asyncio
async def test_failure_backoff_suppresses_refetch():
    key = SigningKey()
    fetch = ScriptedFetcher(key.blob, _outage())
    clock = FakeClock()
    cache = _cache(fetch, clock)
    await cache.get_key()

    clock.advance(101)
    await cache.get_key()
    assert fetch.calls == 2

    clock.advance(1)
    await cache.get_key()
    assert fetch.calls == 2  # within backoff

    clock.advance(5)
    await cache.get_key()
    assert fetch.calls == 3


@pytest.mark.asyncio
async def test_concurrent_misses_fetch_once():
    key = SigningKey()
    calls = 0

    async def slow_fetch() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return key.blob

    cache = _cache(slow_fetch, FakeClock())
    results = await asyncio.gather(*(cache.get_key() for _ in range(10)))

    assert calls == 1
    assert all(r is results[0] for r in results)


@pytest.mark.asyncio
async def test_forced_refresh_picks_up_rotated_key():
    old, new = SigningKey(), SigningKey()
    fetch = ScriptedFetcher(old.blob, new.blob)
    clock = FakeClock()
    cache = _cache(fetch, clock)
    await cache.get_key()

    clock.advance(30)
    rotated = await cache.get_key(force_refresh=True)
    assert rotated.pem == new.pem
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_forced_refresh_is_rate_limited():
    key = SigningKey()
    fetch = ScriptedFetcher(key.blob)
    clock = FakeClock()
    cache = _cache(fetch, clock)
    first = await cache.get_key()

    clock.advance(5)
    again = await cache.get_key(force_refresh=True)
    assert again is first
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_unparseable_pem_does_not_replace_good_key():
    key = SigningKey()
    corrupt = base64.b64encode(b"-----BEGIN PUBLIC KEY-----\nnot a key\n-----END PUBLIC KEY-----\n").decode()
    fetch = ScriptedFetcher(key.blob, corrupt)
    clock = FakeClock()
    cache = _cache(fetch, clock)
    good = await cache.get_key()

    clock.advance(120)
    served = await cache.get_key()

    assert served is good
    assert cache.entry is good
    clock.advance(1)
    assert await cache.get_key() is good
    assert fetch.calls == 2  # backoff after the rejected blob


@pytest.mark.asyncio
async def test_unparseable_pem_without_cached_key_is_key_unavailable():
    corrupt = base64.b64encode(b"-----BEGIN PUBLIC KEY-----\nAAAA\n-----END PUBLIC KEY-----\n").decode()
    cache = _cache(ScriptedFetcher(corrupt), FakeClock())
    with pytest.raises(KeyUnavailableError):
        await cache.get_key()
    assert cache.entry is None
