import pytest

from steam import RateLimited, RateLimiter

from .conftest import FakeClock


def test_tenth_request_passes_and_eleventh_is_rejected():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=10, window_seconds=60, clock=clock)

    for _ in range(10):
        limiter.acquire("player")
        clock.advance(1)

    with pytest.raises(RateLimited) as excinfo:
        limiter.acquire("player")

    # Oldest request was at t=0, now is t=10: it leaves the window in 50s.
    assert excinfo.value.retry_after_seconds == 50
    assert excinfo.value.status_code == 429
    assert excinfo.value.payload["retry_after_seconds"] == 50


def test_window_slides_once_oldest_request_expires():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.acquire("player")
    clock.advance(30)
    limiter.acquire("player")

    clock.advance(29)
    with pytest.raises(RateLimited):
        limiter.acquire("player")

    clock.advance(1)
    limiter.acquire("player")
    assert limiter.remaining("player") == 0


def test_rejected_requests_are_not_recorded():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.acquire("player")
    for _ in range(5):
        clock.advance(10)
        with pytest.raises(RateLimited):
            limiter.acquire("player")

    clock.advance(10)
    limiter.acquire("player")


def test_players_have_independent_windows():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.acquire("alice")
    limiter.acquire("bob")
    with pytest.raises(RateLimited):
        limiter.acquire("alice")
    assert limiter.remaining("carol") == 1


def test_retry_hint_is_at_least_one_second():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.acquire("player")
    clock.advance(59.9)
    with pytest.raises(RateLimited) as excinfo:
        limiter.acquire("player")
    assert excinfo.value.retry_after_seconds == 1


def test_invalid_maximum_is_rejected():
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)


def test_idle_players_are_forgotten():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.acquire("alice")
    limiter.acquire("bob")
    assert limiter.tracked_keys() == 2

    clock.advance(60)
    limiter.acquire("carol")
    assert limiter.tracked_keys() == 1

    clock.advance(60)
    assert limiter.remaining("carol") == 2
    assert limiter.tracked_keys() == 0


def test_sweep_keeps_players_with_requests_in_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.acquire("alice")
    clock.advance(30)
    limiter.acquire("bob")
    clock.advance(30)

    assert limiter.sweep() == 1
    assert limiter.remaining("bob") == 1
