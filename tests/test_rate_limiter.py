import threading

import pytest

from feedrelay.security.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_fourth_request_in_window_is_denied_then_allowed_after_window():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=3, clock=clock)

    assert all(limiter.admit("1.2.3.4").allowed for _ in range(3))

    clock.advance(10)
    denied = limiter.admit("1.2.3.4")
    assert denied.allowed is False
    assert denied.retry_after_seconds == 50

    clock.advance(51)
    assert limiter.admit("1.2.3.4").allowed is True


def test_origins_are_counted_independently():
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())

    assert limiter.admit("a").allowed is True
    assert limiter.admit("b").allowed is True
    assert limiter.admit("a").allowed is False


def test_retry_after_is_at_least_one_second():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
    limiter.admit("a")

    clock.advance(59.9)
    decision = limiter.admit("a")

    assert decision.allowed is False
    assert decision.retry_after_seconds == 1


def test_window_boundary_is_still_the_same_window():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
    limiter.admit("a")

    clock.advance(60)
    assert limiter.admit("a").allowed is False

    clock.advance(0.5)
    assert limiter.admit("a").allowed is True


def test_expired_buckets_are_swept():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=5, clock=clock)
    for origin in ("a", "b", "c"):
        limiter.admit(origin)
    assert limiter.active_origins() == 3

    clock.advance(61)
    limiter.admit("d")

    assert limiter.active_origins() == 1


def test_concurrent_admits_never_exceed_the_limit():
    limiter = RateLimiter(window_seconds=60, max_requests=50, clock=FakeClock())
    allowed = []

    def worker():
        for _ in range(20):
            allowed.append(limiter.admit("shared").allowed)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert allowed.count(True) == 50


@pytest.mark.parametrize("window, max_requests", [(0, 1), (60, 0)])
def test_invalid_limits_are_rejected(window, max_requests):
    with pytest.raises(ValueError):
        RateLimiter(window_seconds=window, max_requests=max_requests)
