"""Unit tests for metrics observers."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

from structlog.testing import capture_logs

from insightguard.adapters.metrics import (
    CompositeObserver,
    InMemoryObserver,
    LoggingObserver,
    NoopObserver,
)
from insightguard.core.interfaces import MetricsObserver


class TestInMemoryObserver:
    """Tests for InMemoryObserver."""

    def test_counts_by_label_subset(self) -> None:
        """Test count filters on any subset of labels."""
        observer = InMemoryObserver()
        observer.record_event("guardrail", {"type": "input", "action": "blocked", "reason": "pii"})
        observer.record_event("guardrail", {"type": "input", "action": "blocked", "reason": "injection"})
        observer.record_event("guardrail", {"type": "input", "action": "allowed"})

        assert observer.count("guardrail") == 3
        assert observer.count("guardrail", action="blocked") == 2
        assert observer.count("guardrail", reason="pii") == 1
        assert observer.count("circuit_breaker") == 0

    def test_snapshot(self) -> None:
        """Test snapshot returns serialisable counters."""
        observer = InMemoryObserver()
        observer.record_event("analysis", {"status": "success"})
        observer.record_event("analysis", {"status": "success"})

        assert observer.snapshot() == [
            {"kind": "analysis", "labels": {"status": "success"}, "count": 2}
        ]

    def test_clear(self) -> None:
        """Test clear drops every counter."""
        observer = InMemoryObserver()
        observer.record_event("analysis", {"status": "error"})

        observer.clear()

        assert observer.snapshot() == []

    def test_thread_safe(self) -> None:
        """Test concurrent increments are not lost."""
        observer = InMemoryObserver()

        def worker() -> None:
            for _ in range(1000):
                observer.record_event("analysis", {"status": "success"})

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert observer.count("analysis") == 8000

    def test_satisfies_protocol(self) -> None:
        """Test observers implement MetricsObserver."""
        assert isinstance(InMemoryObserver(), MetricsObserver)
        assert isinstance(NoopObserver(), MetricsObserver)


class TestLoggingObserver:
    """Tests for LoggingObserver."""

    def test_logs_event_with_labels(self) -> None:
        """Test each event becomes one structured log line."""
        with capture_logs() as logs:
            LoggingObserver().record_event(
                "circuit_breaker", {"provider": "anthropic", "event": "open"}
            )

        assert logs == [
            {
                "event": "metric_event",
                "log_level": "info",
                "kind": "circuit_breaker",
                "labels": {"provider": "anthropic", "event": "open"},
            }
        ]


class TestCompositeObserver:
    """Tests for CompositeObserver."""

    def test_fans_out(self) -> None:
        """Test every wrapped observer receives the event."""
        first = InMemoryObserver()
        second = MagicMock()
        composite = CompositeObserver([first, second])

        composite.record_event("grounding", {"result": "grounded"})

        assert first.count("grounding", result="grounded") == 1
        second.record_event.assert_called_once_with("grounding", {"result": "grounded"})
