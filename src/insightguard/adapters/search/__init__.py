"""Record search adapters."""

from .memory import InMemoryRecordSearch, load_seed_data

__all__ = ["InMemoryRecordSearch", "load_seed_data"]
