"""Domain types - Immutable models defining core domain objects.

This module contains the core data structures passed through the
guarded analysis pipeline. Pydantic models are frozen (immutable) to
ensure data integrity once a request or answer has been constructed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Request and response bodies use camelCase on the wire.
WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ConfidenceLevel(str, Enum):
    """Recognised confidence levels for an answer."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: str | None) -> ConfidenceLevel | None:
        """Parse a raw confidence string, case-insensitively.

        Returns None for anything outside the three recognised levels.
        """
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class RejectionReason(str, Enum):
    """Typed reason codes for input guardrail rejections."""

    EMPTY = "empty"
    TOO_SHORT = "too_short"
    INJECTION = "injection"
    PII = "pii"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity resolved by the authentication layer.

    Attributes:
        user_id: Principal used to key rate-limit budgets.
        role: RBAC role of the caller.
        tenant_id: Tenant the caller belongs to.
        tenant_type: internal or external tenant.
    """

    user_id: str
    role: str = "viewer"
    tenant_id: str = ""
    tenant_type: str = "internal"


@dataclass(frozen=True)
class SearchCriteria:
    """Criteria handed to the record search collaborators."""

    limit: int
    location_id: str | None = None


class AnalyzeRequest(BaseModel):
    """Input: a free-text business question.

    Attributes:
        question: The raw question text.
        location_focus: Optional location ID to focus the analysis on.
        result_limit: Optional cap on records fetched per collection.
    """

    model_config = WIRE_CONFIG

    question: str
    location_focus: str | None = None
    result_limit: int | None = Field(default=None, ge=1, le=500)


class LLMAnalysisResult(BaseModel):
    """Raw answer from a model provider.

    The confidence is kept as a plain string: the answer is untrusted
    until it has passed output validation.
    """

    model_config = ConfigDict(frozen=True)

    summary: str
    confidence: str
    reasoning: str | None = None


class PreProcessResult(BaseModel):
    """Verdict of the input guardrails for one request."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    sanitized_question: str | None = None
    rejection_reason: RejectionReason | None = None
    message: str | None = None
    matched_category: str | None = None

    @classmethod
    def allow(cls, sanitized_question: str) -> PreProcessResult:
        """Build an allowing result."""
        return cls(allowed=True, sanitized_question=sanitized_question)

    @classmethod
    def reject(
        cls,
        reason: RejectionReason,
        message: str,
        matched_category: str | None = None,
    ) -> PreProcessResult:
        """Build a rejecting result with a human-readable message."""
        return cls(
            allowed=False,
            rejection_reason=reason,
            message=message,
            matched_category=matched_category,
        )


class PostProcessResult(BaseModel):
    """Outcome of output validation.

    The response is always populated: either the validated model
    answer or the generated fallback.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    response: LLMAnalysisResult
    reason: str | None = None


class GroundingResult(BaseModel):
    """Estimate of how well an answer is supported by its context.

    Attributes:
        grounded: Whether the score met the configured threshold.
        score: Fraction of verifiable terms found in the context.
        reason: Explanation when not grounded.
    """

    model_config = ConfigDict(frozen=True)

    grounded: bool
    score: float = Field(ge=0.0, le=1.0)
    reason: str | None = None


class DataPoints(BaseModel):
    """Number of records analysed, per record kind."""

    model_config = WIRE_CONFIG

    records_analyzed_by_kind: dict[str, int] = Field(default_factory=dict)

    @property
    def members_analyzed(self) -> int:
        """Number of membership records analysed."""
        return self.records_analyzed_by_kind.get("members", 0)

    @property
    def locations_analyzed(self) -> int:
        """Number of location records analysed."""
        return self.records_analyzed_by_kind.get("locations", 0)

    @property
    def total(self) -> int:
        """Total records analysed across all kinds."""
        return sum(self.records_analyzed_by_kind.values())


class Insight(BaseModel):
    """Output: the answer returned to the caller.

    Attributes:
        question: The question as submitted.
        summary: Answer text.
        confidence: One of high, medium, low.
        reasoning: Optional explanation of the answer.
        data_points: Record counts per kind that fed the answer.
        generated_at: UTC timestamp of generation.
        provider_name: Name of the model provider.
        grounding: Advisory grounding verdict, when one was computed.
    """

    model_config = WIRE_CONFIG

    question: str
    summary: str
    confidence: ConfidenceLevel
    reasoning: str | None = None
    data_points: DataPoints = Field(default_factory=DataPoints)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    provider_name: str
    grounding: GroundingResult | None = None
