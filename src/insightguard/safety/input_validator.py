"""Structural validation of raw questions.

Checks emptiness and minimum length, and normalises whitespace.
There is no length ceiling here. Long questions are left to the model
and the output checks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from insightguard.core.domain_types import RejectionReason

DEFAULT_MIN_LENGTH = 3

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class InputValidationResult:
    """Result of structural input validation."""

    valid: bool
    sanitized_question: str | None = None
    reason: RejectionReason | None = None
    error: str | None = None


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim.

    Examples:
        >>> normalize_whitespace("  how   many\\n members ")
        'how many members'
    """
    return _WHITESPACE.sub(" ", text).strip()


class InputValidator:
    """Validates and sanitizes the raw question text.

    Attributes:
        min_length: Minimum length of the sanitized question.
    """

    def __init__(self, min_length: int = DEFAULT_MIN_LENGTH) -> None:
        """Initialize the validator.

        Args:
            min_length: Minimum semantic length in characters.
        """
        if min_length < 1:
            raise ValueError("min_length must be at least 1")
        self.min_length = min_length

    def validate(self, raw: str | None) -> InputValidationResult:
        """Validate a raw question.

        Args:
            raw: The question as submitted by the caller.

        Returns:
            InputValidationResult with the sanitized question when valid.
        """
        if raw is None or not isinstance(raw, str) or not raw.strip():
            return InputValidationResult(
                valid=False,
                reason=RejectionReason.EMPTY,
                error="Question cannot be empty",
            )

        sanitized = normalize_whitespace(raw)
        if len(sanitized) < self.min_length:
            return InputValidationResult(
                valid=False,
                reason=RejectionReason.TOO_SHORT,
                error=f"Question too short (minimum {self.min_length} characters)",
            )

        return InputValidationResult(valid=True, sanitized_question=sanitized)
