"""Structural checks on model answers.

This is the last line of defense against an empty or malformed
response, independent of which provider produced it.
"""

from __future__ import annotations

from dataclasses import dataclass

from insightguard.core.domain_types import ConfidenceLevel, LLMAnalysisResult

DEFAULT_MIN_SUMMARY_LENGTH = 10
DEFAULT_MAX_SUMMARY_LENGTH = 10_000


@dataclass(frozen=True)
class OutputValidationResult:
    """Result of output validation."""

    valid: bool
    reason: str | None = None


class OutputValidator:
    """Validates a model answer before it reaches the caller.

    Attributes:
        min_summary_length: Minimum stripped summary length.
        max_summary_length: Maximum summary length, against runaway output.
    """

    def __init__(
        self,
        min_summary_length: int = DEFAULT_MIN_SUMMARY_LENGTH,
        max_summary_length: int = DEFAULT_MAX_SUMMARY_LENGTH,
    ) -> None:
        self.min_summary_length = min_summary_length
        self.max_summary_length = max_summary_length

    def validate(self, result: LLMAnalysisResult | None) -> OutputValidationResult:
        """Check summary presence, summary length and confidence level.

        Args:
            result: The raw model answer.

        Returns:
            OutputValidationResult; invalid results carry a reason.
        """
        if result is None:
            return OutputValidationResult(valid=False, reason="No response from model")

        summary = (result.summary or "").strip()
        if not summary:
            return OutputValidationResult(valid=False, reason="Empty summary")

        if len(summary) < self.min_summary_length:
            return OutputValidationResult(
                valid=False,
                reason=f"Summary too short ({len(summary)} < {self.min_summary_length})",
            )

        if len(summary) > self.max_summary_length:
            return OutputValidationResult(
                valid=False,
                reason=f"Summary too long ({len(summary)} > {self.max_summary_length})",
            )

        if ConfidenceLevel.parse(result.confidence) is None:
            return OutputValidationResult(
                valid=False,
                reason=f"Invalid confidence level: {result.confidence!r}",
            )

        return OutputValidationResult(valid=True)
