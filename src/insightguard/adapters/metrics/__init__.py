"""Metrics observers."""

from .observers import CompositeObserver, InMemoryObserver, LoggingObserver, NoopObserver

__all__ = [
    "CompositeObserver",
    "InMemoryObserver",
    "LoggingObserver",
    "NoopObserver",
]
