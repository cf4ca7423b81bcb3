from station.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_blocks_after_limit_until_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(2, 60, clock=clock)

    assert limiter.hit("alice").allowed
    second = limiter.hit("alice")
    assert second.allowed and second.remaining == 0

    clock.now = 20
    blocked = limiter.hit("alice")
    assert not blocked.allowed
    assert blocked.headers()["Retry-After"] == "40"
    assert blocked.headers()["X-RateLimit-Limit"] == "2"

    clock.now = 61
    assert limiter.hit("alice").allowed


def test_keys_are_independent():
    limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())
    assert limiter.hit("alice").allowed
    assert not limiter.hit("alice").allowed
    assert limiter.hit("bob").allowed


def test_allowed_decision_has_no_retry_after():
    headers = FixedWindowRateLimiter(5, 60, clock=FakeClock()).hit("x").headers()
    assert "Retry-After" not in headers
    assert headers["X-RateLimit-Remaining"] == "4"


def test_expired_windows_are_dropped():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(3, 60, clock=clock)
    for key in ("alice", "bob", "carol"):
        limiter.hit(key)
    assert len(limiter) == 3

    clock.now = 60
    limiter.hit("dave")
    assert len(limiter) == 1
