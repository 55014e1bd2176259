import pytest

from mdmc_crm.core.exceptions import TooManyRequestsError
from mdmc_crm.core.rate_limit import InMemoryRateLimitStore, UserRateLimiter
from mdmc_crm.main import app


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_store_denies_once_the_window_is_full():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock)

    assert store.hit("a", 2, 60) == (True, 0)
    clock.now += 10
    assert store.hit("a", 2, 60) == (True, 0)
    clock.now += 10
    allowed, retry_after = store.hit("a", 2, 60)

    assert not allowed
    assert retry_after == 40


def test_window_slides():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock)
    store.hit("a", 1, 60)

    clock.now += 59
    assert not store.hit("a", 1, 60)[0]
    clock.now += 2
    assert store.hit("a", 1, 60)[0]


def test_keys_are_counted_separately():
    store = InMemoryRateLimitStore(FakeClock())
    store.hit("a", 1, 60)

    assert store.hit("b", 1, 60)[0]
    assert not store.hit("a", 1, 60)[0]


def test_limiter_raises_with_retry_after():
    limiter = UserRateLimiter(InMemoryRateLimitStore(FakeClock()), max_requests=1, window_seconds=30)
    limiter.check("user-1")

    with pytest.raises(TooManyRequestsError) as exc_info:
        limiter.check("user-1")
    assert exc_info.value.retry_after == 30
    assert exc_info.value.status_code == 429


def test_reset_forgets_one_account():
    limiter = UserRateLimiter(InMemoryRateLimitStore(FakeClock()), max_requests=1, window_seconds=30)
    limiter.check("user-1")
    limiter.check("user-2")

    limiter.reset("user-1")

    limiter.check("user-1")
    with pytest.raises(TooManyRequestsError):
        limiter.check("user-2")


def test_disabled_limiter_never_raises():
    limiter = UserRateLimiter(max_requests=1, window_seconds=30, enabled=False)

    for _ in range(5):
        limiter.check("user-1")


async def test_api_returns_429_with_retry_after(client, make_user, auth_headers):
    first = await make_user()
    second = await make_user()
    previous = app.state.rate_limiter
    app.state.rate_limiter = UserRateLimiter(max_requests=2, window_seconds=60)
    try:
        for _ in range(2):
            response = await client.get("/api/auth/profile", headers=auth_headers(first))
            assert response.status_code == 200

        response = await client.get("/api/auth/profile", headers=auth_headers(first))
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "RATE_LIMIT_EXCEEDED"

        response = await client.get("/api/auth/profile", headers=auth_headers(second))
        assert response.status_code == 200
    finally:
        app.state.rate_limiter = previous
