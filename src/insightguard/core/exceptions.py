"""Domain-specific exceptions.

All exceptions in the insightguard system inherit from InsightGuardError,
making it easy to catch all system errors while still being able
to handle specific error types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .domain_types import PreProcessResult, RejectionReason


class InsightGuardError(Exception):
    """Base exception for all insightguard errors.

    All custom exceptions in the system should inherit from this class
    to enable catching all insightguard-specific errors with a single except clause.
    """

    pass


class GuardrailRejection(InsightGuardError):
    """Question was rejected by the input guardrails.

    Carries the PreProcessResult so the boundary layer can map the
    typed rejection reason to a client-facing status code.

    Attributes:
        result: The rejecting PreProcessResult.
    """

    def __init__(self, result: PreProcessResult) -> None:
        """Initialize GuardrailRejection.

        Args:
            result: The PreProcessResult with allowed=False.
        """
        super().__init__(result.message or "Question rejected")
        self.result = result

    @property
    def reason(self) -> RejectionReason | None:
        """Typed rejection reason."""
        return self.result.rejection_reason

    @classmethod
    def from_result(cls, result: PreProcessResult) -> GuardrailRejection:
        """Build the most specific rejection subclass for a result.

        Args:
            result: The rejecting PreProcessResult.

        Returns:
            An InputRejected, InjectionDetected, PIIDetected or
            RateLimitExceeded instance.
        """
        from .domain_types import RejectionReason

        mapping: dict[RejectionReason | None, type[GuardrailRejection]] = {
            RejectionReason.EMPTY: InputRejected,
            RejectionReason.TOO_SHORT: InputRejected,
            RejectionReason.INJECTION: InjectionDetected,
            RejectionReason.PII: PIIDetected,
            RejectionReason.RATE_LIMITED: RateLimitExceeded,
        }
        return mapping.get(result.rejection_reason, cls)(result)


class InputRejected(GuardrailRejection):
    """Question is empty or too short. The caller can resubmit."""

    pass


class InjectionDetected(GuardrailRejection):
    """Question matched a prompt-injection rule.

    This is a policy rejection - the question is never forwarded
    to the model.
    """

    pass


class PIIDetected(GuardrailRejection):
    """Question contains a sensitive personal identifier."""

    pass


class RateLimitExceeded(GuardrailRejection):
    """Caller exhausted the request budget for the current window."""

    pass


class LLMError(InsightGuardError):
    """LLM call failed.

    Raised when an LLM API call fails. The `retryable` attribute
    indicates whether the error is likely transient and worth retrying.

    Attributes:
        retryable: Whether this error is likely transient.
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        """Initialize LLMError.

        Args:
            message: Error description.
            retryable: Whether error is transient and retryable.
        """
        super().__init__(message)
        self.retryable = retryable


class ProviderTimeout(LLMError):
    """Model call exceeded the configured timeout.

    Counted as a failure by the circuit breaker. The late result,
    if it ever arrives, is discarded.
    """

    pass


class ProviderError(LLMError):
    """Model provider returned an error response."""

    pass


class RuleLoadError(InsightGuardError):
    """A guardrail rule file could not be parsed.

    Raised for unreadable YAML, unknown categories or invalid
    regular expressions.
    """

    pass
