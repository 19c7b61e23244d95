from twilsta.core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    results = [limiter.hit("create_post:u1", 3, 60) for _ in range(3)]
    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [2, 1, 0]

    clock.now += 10
    blocked = limiter.hit("create_post:u1", 3, 60)
    assert not blocked.allowed
    assert blocked.retry_after == 50
    assert blocked.headers()["X-RateLimit-Remaining"] == "0"


def test_window_resets():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(4):
        limiter.hit("k", 3, 60)

    clock.now += 60
    result = limiter.hit("k", 3, 60)
    assert result.allowed
    assert result.remaining == 2
    assert result.reset_at == clock.now + 60


def test_keys_are_independent():
    limiter = RateLimiter(clock=FakeClock())
    limiter.hit("create_post:u1", 1, 60)

    assert not limiter.hit("create_post:u1", 1, 60).allowed
    assert limiter.hit("create_post:u2", 1, 60).allowed
    assert limiter.hit("update_post:u1", 1, 60).allowed


def test_reset_clears_windows():
    limiter = RateLimiter(clock=FakeClock())
    limiter.hit("k", 1, 60)
    limiter.reset()
    assert limiter.hit("k", 1, 60).allowed
