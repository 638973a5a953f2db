"""MetricsObserver implementations.

Production wiring decides the sink: structured logs, in-memory counters
exposed over the API, or nothing at all in tests.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from insightguard.core.interfaces import MetricsObserver

logger = structlog.get_logger()

_LabelKey = tuple[str, frozenset[tuple[str, str]]]


class NoopObserver:
    """Discards every event."""

    def record_event(self, kind: str, labels: dict[str, str]) -> None:
        """Ignore the event."""
        return None


class LoggingObserver:
    """Writes every event as a structured log line."""

    def __init__(self, event_name: str = "metric_event") -> None:
        self.event_name = event_name

    def record_event(self, kind: str, labels: dict[str, str]) -> None:
        """Log the event with its labels."""
        logger.info(self.event_name, kind=kind, labels=dict(labels))


class InMemoryObserver:
    """Thread-safe event counters keyed by kind and label set.

    Usage:
        observer = InMemoryObserver()
        observer.record_event("guardrail", {"type": "input", "action": "blocked"})
        observer.count("guardrail", action="blocked")  # 1
    """

    def __init__(self) -> None:
        self._counts: Counter[_LabelKey] = Counter()
        self._lock = threading.Lock()

    def record_event(self, kind: str, labels: dict[str, str]) -> None:
        """Increment the counter for this kind and label set."""
        key = (kind, frozenset((k, str(v)) for k, v in labels.items()))
        with self._lock:
            self._counts[key] += 1

    def count(self, kind: str, **labels: str) -> int:
        """Sum of counters for a kind whose labels include the given ones.

        Args:
            kind: Event family.
            **labels: Label subset to filter on.

        Returns:
            Number of matching events.
        """
        wanted = {(k, str(v)) for k, v in labels.items()}
        with self._lock:
            return sum(n for (k, lbls), n in self._counts.items() if k == kind and wanted <= lbls)

    def snapshot(self) -> list[dict[str, object]]:
        """Return all counters as serialisable dicts."""
        with self._lock:
            items = list(self._counts.items())
        return [
            {"kind": kind, "labels": dict(sorted(labels)), "count": n}
            for (kind, labels), n in sorted(items, key=lambda i: (i[0][0], sorted(i[0][1])))
        ]

    def clear(self) -> None:
        """Reset all counters."""
        with self._lock:
            self._counts.clear()


class CompositeObserver:
    """Fans each event out to several observers."""

    def __init__(self, observers: Iterable[MetricsObserver]) -> None:
        self.observers = list(observers)

    def record_event(self, kind: str, labels: dict[str, str]) -> None:
        """Forward the event to every observer."""
        for observer in self.observers:
            observer.record_event(kind, labels)
