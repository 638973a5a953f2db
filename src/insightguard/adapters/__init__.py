"""Adapters - Infrastructure implementations of core interfaces.

Adapters are organized by type:
- llm/: Model providers backed by pydantic-ai
- search/: Record search collaborators
- metrics/: MetricsObserver sinks
"""
