"""Unit tests for the per-identity rate limiter."""

from __future__ import annotations

import threading

import pytest

from insightguard.safety.rate_limit import RateLimitConfig, RateLimiter
from tests.fixtures.mocks import FakeClock


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_default_values(self) -> None:
        """Test default budget."""
        config = RateLimitConfig()

        assert config.max_requests == 10
        assert config.window_seconds == 60.0

    @pytest.mark.parametrize(
        "config",
        [RateLimitConfig(max_requests=0), RateLimitConfig(window_seconds=0)],
    )
    def test_invalid_config_rejected(self, config: RateLimitConfig) -> None:
        """Test the limiter refuses an unusable budget."""
        with pytest.raises(ValueError):
            RateLimiter(config)


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.fixture
    def limiter(self, fake_clock: FakeClock) -> RateLimiter:
        """Return a limiter allowing 3 requests per 60 seconds."""
        return RateLimiter(RateLimitConfig(max_requests=3, window_seconds=60), fake_clock)

    def test_allows_within_budget(self, limiter: RateLimiter) -> None:
        """Test requests under the limit are admitted."""
        assert [limiter.consume("alice") for _ in range(3)] == [True, True, True]
        assert limiter.count("alice") == 3

    def test_rejects_over_budget(self, limiter: RateLimiter) -> None:
        """Test the request after the limit is refused."""
        for _ in range(3):
            limiter.consume("alice")

        assert limiter.consume("alice") is False
        assert limiter.count("alice") == 3

    def test_identities_are_independent(self, limiter: RateLimiter) -> None:
        """Test one caller cannot exhaust another's budget."""
        for _ in range(3):
            limiter.consume("alice")

        assert limiter.consume("bob") is True
        assert limiter.remaining("bob") == 2

    def test_window_resets(self, limiter: RateLimiter, fake_clock: FakeClock) -> None:
        """Test the budget refills once the window has elapsed."""
        for _ in range(3):
            limiter.consume("alice")

        fake_clock.advance(59.9)
        assert limiter.consume("alice") is False

        fake_clock.advance(0.2)
        assert limiter.consume("alice") is True
        assert limiter.count("alice") == 1

    def test_remaining(self, limiter: RateLimiter) -> None:
        """Test remaining budget counts down to zero."""
        assert limiter.remaining("alice") == 3
        limiter.consume("alice")
        assert limiter.remaining("alice") == 2

        for _ in range(5):
            limiter.consume("alice")
        assert limiter.remaining("alice") == 0

    def test_retry_after(self, limiter: RateLimiter, fake_clock: FakeClock) -> None:
        """Test retry_after reports the time left in the window."""
        limiter.consume("alice")
        fake_clock.advance(20)

        assert limiter.retry_after("alice") == pytest.approx(40)

    def test_reset_single_identity(self, limiter: RateLimiter) -> None:
        """Test resetting one identity leaves others intact."""
        limiter.consume("alice")
        limiter.consume("bob")

        limiter.reset("alice")

        assert limiter.count("alice") == 0
        assert limiter.count("bob") == 1

    def test_reset_all(self, limiter: RateLimiter) -> None:
        """Test resetting every identity."""
        limiter.consume("alice")
        limiter.consume("bob")

        limiter.reset()

        assert limiter.count("alice") == 0
        assert limiter.count("bob") == 0

    def test_evict_idle(self, limiter: RateLimiter, fake_clock: FakeClock) -> None:
        """Test budgets idle for longer than a window are dropped."""
        limiter.consume("alice")
        fake_clock.advance(90)
        limiter.consume("bob")
        fake_clock.advance(40)

        evicted = limiter.evict_idle()

        assert evicted == 1
        assert limiter.count("bob") == 1

    def test_concurrent_same_identity_never_exceeds_budget(self) -> None:
        """Test concurrent consumes from one identity respect the limit."""
        limiter = RateLimiter(RateLimitConfig(max_requests=25, window_seconds=60))
        admitted: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(50)

        def worker() -> None:
            barrier.wait()
            ok = limiter.consume("alice")
            with lock:
                admitted.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert admitted.count(True) == 25
        assert limiter.count("alice") == 25
