"""Protocol definitions for all external dependencies.

This module defines the interfaces (Protocols) that adapters must implement.
The core domain only depends on these protocols, never on concrete implementations.

Search, redaction, the remote model and the metrics sink all live
outside the guarded pipeline and are injected at wiring time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .domain_types import AuthenticatedUser, LLMAnalysisResult, SearchCriteria


@runtime_checkable
class LLMProvider(Protocol):
    """Interface for the remote language model.

    Implementations answer a sanitized question against a redacted
    context. Providers may raise on failure; the circuit breaker is
    responsible for converting failures into fallbacks.
    """

    def get_name(self) -> str:
        """Return the provider name reported on each Insight."""
        ...

    async def analyze(
        self,
        question: str,
        context: str,
        system_prompt: str | None = None,
    ) -> LLMAnalysisResult:
        """Answer a question against the supplied context.

        Args:
            question: Sanitized question text.
            context: Redacted data summary.
            system_prompt: Optional system instructions.

        Returns:
            LLMAnalysisResult with summary, confidence and reasoning.

        Raises:
            LLMError: If the model call fails.
        """
        ...


@runtime_checkable
class RecordSearch(Protocol):
    """Interface for the search/index layer supplying record summaries.

    Implementations are expected to apply tenant scoping and field-level
    redaction for the given user before returning records.
    """

    async def search(
        self,
        criteria: SearchCriteria,
        user: AuthenticatedUser,
    ) -> list[dict[str, Any]]:
        """Return records matching the criteria, visible to the user."""
        ...


@runtime_checkable
class Redactor(Protocol):
    """Interface for PII redaction of outbound context."""

    def redact(self, text: str) -> str:
        """Return text with sensitive identifiers masked."""
        ...


@runtime_checkable
class MetricsObserver(Protocol):
    """Interface for metrics/event sinks.

    The guardrails, circuit breaker and orchestrator report events
    through this interface and hold no knowledge of what the sink
    does with them.
    """

    def record_event(self, kind: str, labels: dict[str, str]) -> None:
        """Record a single event.

        Args:
            kind: Event family, e.g. "circuit_breaker" or "guardrail".
            labels: Event labels, e.g. {"event": "open"}.
        """
        ...
