import asyncio

import pytest

from call_transcriber.crm.token_cache import BearerCredential, TokenCache


class FakeClock:
    def __init__(self, now: float = 10_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    def __init__(self, clock: FakeClock, *, lifetime: float = 3600.0, delay: float = 0.0) -> None:
        self.clock = clock
        self.lifetime = lifetime
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> BearerCredential:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return BearerCredential(token=f"token-{self.calls}", expires_at=self.clock() + self.lifetime)


@pytest.mark.asyncio
async def test_token_is_cached_until_near_expiry():
    clock = FakeClock()
    fetcher = CountingFetcher(clock)
    cache = TokenCache(fetcher, skew_seconds=300, clock=clock)

    assert await cache.get_token() == "token-1"
    clock.now += 3000
    assert await cache.get_token() == "token-1"
    assert fetcher.calls == 1

    clock.now += 301
    assert await cache.get_token() == "token-2"
    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh():
    clock = FakeClock()
    fetcher = CountingFetcher(clock, delay=0.01)
    cache = TokenCache(fetcher, clock=clock)

    tokens = await asyncio.gather(*(cache.get_token() for _ in range(10)))

    assert set(tokens) == {"token-1"}
    assert fetcher.calls == 1
    assert cache.refresh_count == 1


@pytest.mark.asyncio
async def test_forced_refresh_replaces_fresh_token():
    clock = FakeClock()
    fetcher = CountingFetcher(clock)
    cache = TokenCache(fetcher, clock=clock)

    await cache.get_token()
    assert await cache.get_token(force_refresh=True) == "token-2"


@pytest.mark.asyncio
async def test_concurrent_forced_refreshes_coalesce():
    clock = FakeClock()
    fetcher = CountingFetcher(clock, delay=0.01)
    cache = TokenCache(fetcher, clock=clock)
    await cache.get_token()

    tokens = await asyncio.gather(*(cache.get_token(force_refresh=True) for _ in range(5)))

    assert set(tokens) == {"token-2"}
    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_invalidate_forces_next_refresh():
    clock = FakeClock()
    fetcher = CountingFetcher(clock)
    cache = TokenCache(fetcher, clock=clock)
    await cache.get_token()

    cache.invalidate()

    assert cache.credential is None
    assert await cache.get_token() == "token-2"


@pytest.mark.asyncio
async def test_fetch_failure_propagates_and_leaves_cache_empty():
    async def failing():
        raise RuntimeError("accounts down")

    cache = TokenCache(failing)
    with pytest.raises(RuntimeError, match="accounts down"):
        await cache.get_token()
    assert cache.credential is None


def test_credential_freshness_respects_skew():
    credential = BearerCredential(token="t", expires_at=1000.0)
    assert credential.is_fresh(600.0, 300.0)
    assert not credential.is_fresh(700.0, 300.0)
