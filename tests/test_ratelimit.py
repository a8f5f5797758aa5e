"""
Unit tests for the per-caller rate limiter.
"""

import threading

import pytest

from essay_grader.ratelimit import InMemoryRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)


class TestInMemoryRateLimiter:
    """Tests for InMemoryRateLimiter."""

    def test_allows_up_to_limit(self, limiter: InMemoryRateLimiter) -> None:
        decisions = [limiter.check_and_consume("user-1") for _ in range(5)]

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0]
        assert decisions[0].limit == 5

    def test_denies_over_limit(self, limiter: InMemoryRateLimiter, clock: FakeClock) -> None:
        for _ in range(5):
            limiter.check_and_consume("user-1")
        clock.advance(15.5)

        decision = limiter.check_and_consume("user-1")

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.reset_after_seconds == pytest.approx(44.5)
        assert decision.retry_after_seconds == 45

    def test_keys_are_independent(self, limiter: InMemoryRateLimiter) -> None:
        for _ in range(5):
            limiter.check_and_consume("user-1")

        assert limiter.check_and_consume("user-2").allowed is True

    def test_window_resets(self, limiter: InMemoryRateLimiter, clock: FakeClock) -> None:
        for _ in range(5):
            limiter.check_and_consume("user-1")
        clock.advance(60)

        decision = limiter.check_and_consume("user-1")

        assert decision.allowed is True
        assert decision.remaining == 4

    def test_denied_requests_not_counted(
        self, limiter: InMemoryRateLimiter, clock: FakeClock
    ) -> None:
        for _ in range(8):
            limiter.check_and_consume("user-1")
        clock.advance(60)

        assert limiter.check_and_consume("user-1").remaining == 4

    def test_retry_after_at_least_one_second(
        self, limiter: InMemoryRateLimiter, clock: FakeClock
    ) -> None:
        for _ in range(5):
            limiter.check_and_consume("user-1")
        clock.advance(59.9)

        assert limiter.check_and_consume("user-1").retry_after_seconds == 1

    def test_purge_expired(self, limiter: InMemoryRateLimiter, clock: FakeClock) -> None:
        limiter.check_and_consume("user-1")
        clock.advance(30)
        limiter.check_and_consume("user-2")
        clock.advance(30)

        assert limiter.purge_expired() == 1
        assert limiter.check_and_consume("user-2").remaining == 3

    def test_expired_windows_purged_during_checks(self, clock: FakeClock) -> None:
        limiter = InMemoryRateLimiter(
            max_requests=5, window_seconds=60, clock=clock, purge_interval=3
        )
        limiter.check_and_consume("user-1")
        limiter.check_and_consume("user-2")
        clock.advance(60)

        assert limiter.tracked_keys == 2

        limiter.check_and_consume("user-3")

        assert limiter.tracked_keys == 1
        assert limiter.check_and_consume("user-3").remaining == 3

    def test_live_windows_survive_purge(self, clock: FakeClock) -> None:
        limiter = InMemoryRateLimiter(
            max_requests=5, window_seconds=60, clock=clock, purge_interval=2
        )
        limiter.check_and_consume("user-1")
        clock.advance(30)
        limiter.check_and_consume("user-2")

        assert limiter.tracked_keys == 2
        assert limiter.check_and_consume("user-1").remaining == 3

    def test_concurrent_callers_never_exceed_limit(self) -> None:
        limiter = InMemoryRateLimiter(max_requests=50, window_seconds=60)
        allowed = []

        def hammer() -> None:
            for _ in range(20):
                allowed.append(limiter.check_and_consume("shared").allowed)

        threads = [threading.Thread(target=hammer) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert allowed.count(True) == 50

    @pytest.mark.parametrize(
        "max_requests,window,purge_interval", [(0, 60, 1000), (5, 0, 1000), (5, 60, 0)]
    )
    def test_invalid_configuration(
        self, max_requests: int, window: float, purge_interval: int
    ) -> None:
        with pytest.raises(ValueError):
            InMemoryRateLimiter(
                max_requests=max_requests,
                window_seconds=window,
                purge_interval=purge_interval,
            )
