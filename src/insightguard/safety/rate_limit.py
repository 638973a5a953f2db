"""Per-identity request budgets."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass
class RateBudget:
    """Fixed-window counter for one identity."""

    identity: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration."""

    max_requests: int = 10
    window_seconds: float = 60.0


class RateLimiter:
    """Fixed-window rate limiter keyed by caller identity.

    Each identity has its own budget and its own lock, so one caller
    can never exhaust another's budget and contention only happens
    between concurrent requests from the same identity.

    Usage:
        limiter = RateLimiter(RateLimitConfig(max_requests=5))
        if not limiter.consume(user_id):
            ...  # reject
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            config: Budget configuration. Uses defaults if not provided.
            clock: Monotonic time source, injectable for tests.
        """
        self.config = config or RateLimitConfig()
        if self.config.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.config.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._clock = clock
        self._budgets: dict[str, RateBudget] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _entry(self, identity: str) -> tuple[RateBudget, threading.Lock]:
        with self._registry_lock:
            budget = self._budgets.get(identity)
            if budget is None:
                budget = RateBudget(identity=identity, window_start=self._clock())
                self._budgets[identity] = budget
                self._locks[identity] = threading.Lock()
            return budget, self._locks[identity]

    def _roll(self, budget: RateBudget, now: float) -> None:
        if now - budget.window_start >= self.config.window_seconds:
            budget.window_start = now
            budget.count = 0

    def consume(self, identity: str) -> bool:
        """Try to admit one request for an identity.

        Args:
            identity: Caller principal.

        Returns:
            True if the request fits in the current window's budget.
        """
        budget, lock = self._entry(identity)
        with lock:
            self._roll(budget, self._clock())
            if budget.count >= self.config.max_requests:
                return False
            budget.count += 1
            return True

    def count(self, identity: str) -> int:
        """Number of requests admitted in the identity's current window."""
        budget, lock = self._entry(identity)
        with lock:
            self._roll(budget, self._clock())
            return budget.count

    def remaining(self, identity: str) -> int:
        """Requests left in the identity's current window."""
        return max(0, self.config.max_requests - self.count(identity))

    def retry_after(self, identity: str) -> float:
        """Seconds until the identity's current window resets."""
        budget, lock = self._entry(identity)
        with lock:
            elapsed = self._clock() - budget.window_start
        return max(0.0, self.config.window_seconds - elapsed)

    def reset(self, identity: str | None = None) -> None:
        """Reset rate limit for an identity or all."""
        with self._registry_lock:
            if identity:
                self._budgets.pop(identity, None)
                self._locks.pop(identity, None)
            else:
                self._budgets.clear()
                self._locks.clear()

    def evict_idle(self, older_than: float | None = None) -> int:
        """Drop budgets whose window ended more than older_than seconds ago.

        Args:
            older_than: Idle age in seconds. Defaults to one window.

        Returns:
            Number of budgets evicted.
        """
        horizon = self.config.window_seconds + (
            older_than if older_than is not None else self.config.window_seconds
        )
        now = self._clock()
        with self._registry_lock:
            stale = [k for k, b in self._budgets.items() if now - b.window_start >= horizon]
            for key in stale:
                del self._budgets[key]
                del self._locks[key]
        if stale:
            logger.debug("rate_limit_budgets_evicted", count=len(stale))
        return len(stale)
