"""Circuit Breaker - Fail fast when the model provider degrades.

This module wraps an LLMProvider in a three-state circuit breaker:

- CLOSED: normal operation, calls pass through under a timeout
- OPEN: provider failing, calls fail fast with a fixed fallback
- HALF-OPEN: a single trial call decides between CLOSED and OPEN

State is shared by every request that goes through the same wrapper.
Transitions happen under a lock that is never held across the
provider call.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from insightguard.adapters.metrics import NoopObserver
from insightguard.core.domain_types import ConfidenceLevel, LLMAnalysisResult
from insightguard.core.exceptions import ProviderError, ProviderTimeout

if TYPE_CHECKING:
    from insightguard.core.interfaces import LLMProvider, MetricsObserver

logger = structlog.get_logger()


FALLBACK_RESULT = LLMAnalysisResult(
    summary=(
        "Analysis temporarily unavailable. The AI service is experiencing issues "
        "and will recover shortly."
    ),
    confidence=ConfidenceLevel.LOW.value,
    reasoning="Circuit breaker active - LLM provider unavailable",
)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for the circuit breaker.

    Attributes:
        timeout: Per-call timeout in seconds. Slower calls count as failures.
        error_threshold_percentage: Failure percentage that opens the circuit.
        reset_timeout: Seconds the circuit stays open before a trial call.
        volume_threshold: Minimum calls in the window before it can open.
        rolling_window: Seconds of call history used for failure statistics.
    """

    timeout: float = 30.0
    error_threshold_percentage: float = 50.0
    reset_timeout: float = 30.0
    volume_threshold: int = 3
    rolling_window: float = 60.0


class ResilientModelCall:
    """LLMProvider wrapper with timeout, circuit breaker and fallback.

    While the circuit is open, calls never reach the provider and return
    FALLBACK_RESULT, which has the same shape as any low-confidence
    answer. While closed or half-open, provider failures and timeouts
    are counted and raised as ProviderError / ProviderTimeout.

    Opening the circuit schedules a re-evaluation on the running event
    loop once reset_timeout has elapsed, so the half-open event fires on
    an idle service too. Reading the state or admitting a call performs
    the same check, which covers callers without a running loop.

    Usage:
        model = ResilientModelCall(provider, CircuitBreakerConfig(timeout=10))
        result = await model.analyze(question, context)
    """

    def __init__(
        self,
        provider: LLMProvider,
        config: CircuitBreakerConfig | None = None,
        observer: MetricsObserver | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the circuit breaker.

        Args:
            provider: The model provider to protect.
            config: Breaker configuration. Uses defaults if not provided.
            observer: Sink for state-transition events.
            clock: Monotonic time source, injectable for tests.
        """
        self.provider = provider
        self.config = config or CircuitBreakerConfig()
        self.observer = observer or NoopObserver()
        self._clock = clock
        self._name = provider.get_name()

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._reset_timer: asyncio.TimerHandle | None = None
        self._trial_in_flight = False
        self._window: deque[tuple[float, bool]] = deque()

        self._totals = {"calls": 0, "failures": 0, "timeouts": 0, "fallbacks": 0}

        logger.info(
            "circuit_breaker_initialized",
            provider=self._name,
            timeout=self.config.timeout,
            reset_timeout=self.config.reset_timeout,
        )

    def get_name(self) -> str:
        """Return the wrapped provider's name."""
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        with self._lock:
            self._maybe_half_open(self._clock())
            return self._state

    def is_open(self) -> bool:
        """Check if the circuit is currently failing fast."""
        return self.state == CircuitState.OPEN

    async def analyze(
        self,
        question: str,
        context: str,
        system_prompt: str | None = None,
    ) -> LLMAnalysisResult:
        """Call the provider through the circuit breaker.

        Args:
            question: Sanitized question.
            context: Redacted context.
            system_prompt: Optional system instructions.

        Returns:
            The provider's result, or FALLBACK_RESULT while open.

        Raises:
            ProviderTimeout: If the call exceeded the configured timeout.
            ProviderError: If the provider raised.
        """
        admitted, trial = self._admit()
        if not admitted:
            return self._fallback()

        try:
            result = await asyncio.wait_for(
                self.provider.analyze(question, context, system_prompt),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            self._emit("timeout")
            logger.warning("llm_request_timed_out", provider=self._name, timeout=self.config.timeout)
            self._record_failure(trial, timed_out=True)
            raise ProviderTimeout(
                f"{self._name} did not respond within {self.config.timeout}s",
                retryable=True,
            ) from None
        except asyncio.CancelledError:
            self._release_trial(trial)
            raise
        except Exception as e:
            logger.warning("llm_request_failed", provider=self._name, error=str(e), exc_info=True)
            self._record_failure(trial)
            raise ProviderError(
                f"{self._name} call failed: {e}",
                retryable=getattr(e, "retryable", True),
            ) from e

        self._record_success(trial)
        return result

    def stats(self) -> dict[str, object]:
        """Return call statistics for diagnostics."""
        with self._lock:
            now = self._clock()
            self._maybe_half_open(now)
            self._prune(now)
            calls = len(self._window)
            failures = sum(1 for _, ok in self._window if not ok)
            return {
                "state": self._state.value,
                "window_calls": calls,
                "window_failures": failures,
                "failure_percentage": round(100.0 * failures / calls, 2) if calls else 0.0,
                **self._totals,
            }

    def reset(self) -> None:
        """Force the circuit closed and clear call history."""
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False
            self._window.clear()
            self._cancel_reset_timer()
        if previous != CircuitState.CLOSED:
            self._emit("close")
            logger.info("circuit_reset", provider=self._name, previous_state=previous.value)

    # State machine. Every method below that touches state expects
    # self._lock to be held, except the public entry points.

    def _admit(self) -> tuple[bool, bool]:
        """Decide whether a call may proceed.

        Returns:
            (admitted, is_trial) pair.
        """
        with self._lock:
            self._maybe_half_open(self._clock())
            if self._state == CircuitState.CLOSED:
                self._totals["calls"] += 1
                return True, False
            if self._state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                self._totals["calls"] += 1
                return True, True
            return False, False

    def _maybe_half_open(self, now: float) -> None:
        if self._state != CircuitState.OPEN:
            return
        if now - self._opened_at < self.config.reset_timeout:
            return
        self._state = CircuitState.HALF_OPEN
        self._trial_in_flight = False
        self._cancel_reset_timer()
        self._emit("half-open")
        logger.info("circuit_half_open", provider=self._name)

    def _prune(self, now: float) -> None:
        horizon = now - self.config.rolling_window
        while self._window and self._window[0][0] < horizon:
            self._window.popleft()

    def _record_success(self, trial: bool) -> None:
        with self._lock:
            now = self._clock()
            if trial:
                self._trial_in_flight = False
                self._state = CircuitState.CLOSED
                self._window.clear()
                self._emit("close")
                logger.info("circuit_closed", provider=self._name)
                return
            self._window.append((now, True))
            self._prune(now)

    def _record_failure(self, trial: bool, timed_out: bool = False) -> None:
        with self._lock:
            now = self._clock()
            self._totals["failures"] += 1
            if timed_out:
                self._totals["timeouts"] += 1
            if trial:
                self._trial_in_flight = False
                self._open(now, reason="trial call failed")
                return
            self._window.append((now, False))
            self._prune(now)
            if self._state != CircuitState.CLOSED:
                return
            calls = len(self._window)
            if calls < self.config.volume_threshold:
                return
            failures = sum(1 for _, ok in self._window if not ok)
            percentage = 100.0 * failures / calls
            if percentage >= self.config.error_threshold_percentage:
                self._open(now, reason=f"{percentage:.0f}% of {calls} calls failed")

    def _release_trial(self, trial: bool) -> None:
        if not trial:
            return
        with self._lock:
            # A cancelled trial proves nothing; let the next caller retry it.
            self._trial_in_flight = False

    def _open(self, now: float, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._schedule_reset_check(self.config.reset_timeout)
        self._emit("open")
        logger.warning("circuit_opened", provider=self._name, reason=reason)

    def _schedule_reset_check(self, delay: float) -> None:
        self._cancel_reset_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._reset_timer = loop.call_later(delay, self._on_reset_timer)

    def _cancel_reset_timer(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None

    def _on_reset_timer(self) -> None:
        with self._lock:
            self._reset_timer = None
            if self._state != CircuitState.OPEN:
                return
            remaining = self.config.reset_timeout - (self._clock() - self._opened_at)
            if remaining > 0:
                # Timers may fire slightly early; try again for the remainder.
                self._schedule_reset_check(remaining)
                return
            self._maybe_half_open(self._clock())

    def _fallback(self) -> LLMAnalysisResult:
        with self._lock:
            self._totals["fallbacks"] += 1
        self._emit("fallback")
        logger.warning("circuit_fallback_triggered", provider=self._name)
        return FALLBACK_RESULT

    def _emit(self, event: str) -> None:
        self.observer.record_event("circuit_breaker", {"provider": self._name, "event": event})
