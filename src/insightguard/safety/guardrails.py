"""Guardrails Orchestrator - Input and output policy around the model call.

preprocess runs the input checks in a fixed order, cheapest first:
structural validation, injection patterns, PII patterns, then the rate
limiter (the only check touching shared state). The first rejection
short-circuits the rest.

postprocess validates the model answer and substitutes a fallback when
it is unusable. handle_error converts any failure into a fallback.
Callers never see a raw model response or a raw exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from insightguard.adapters.metrics import NoopObserver
from insightguard.core.domain_types import (
    ConfidenceLevel,
    LLMAnalysisResult,
    PostProcessResult,
    PreProcessResult,
    RejectionReason,
)

from .injection import PromptInjectionDetector
from .input_validator import InputValidator
from .output_validator import OutputValidator
from .pii import PIIScanner
from .rate_limit import RateLimiter

if TYPE_CHECKING:
    from insightguard.core.interfaces import MetricsObserver

logger = structlog.get_logger()

INJECTION_MESSAGE = "Blocked: potential prompt injection detected"
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait before making more requests."

FALLBACK_RESPONSE = LLMAnalysisResult(
    summary=(
        "Unable to generate a reliable answer for this question. "
        "Please rephrase or try again later."
    ),
    confidence=ConfidenceLevel.LOW.value,
    reasoning="Model response failed output validation",
)

ERROR_RESPONSE = LLMAnalysisResult(
    summary="An error occurred while analyzing your question. Please try again later.",
    confidence=ConfidenceLevel.LOW.value,
    reasoning="Analysis failed - see server logs",
)


class GuardrailsOrchestrator:
    """Sequences the input and output guardrails.

    Attributes:
        input_validator: Structural checks on the raw question.
        injection_detector: Prompt-injection rules.
        pii_scanner: Identifier rules for the question text.
        rate_limiter: Per-identity budgets.
        output_validator: Checks on the model answer.
    """

    def __init__(
        self,
        input_validator: InputValidator | None = None,
        injection_detector: PromptInjectionDetector | None = None,
        pii_scanner: PIIScanner | None = None,
        rate_limiter: RateLimiter | None = None,
        output_validator: OutputValidator | None = None,
        observer: MetricsObserver | None = None,
    ) -> None:
        self.input_validator = input_validator or InputValidator()
        self.injection_detector = injection_detector or PromptInjectionDetector()
        self.pii_scanner = pii_scanner or PIIScanner()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.output_validator = output_validator or OutputValidator()
        self.observer = observer or NoopObserver()

    def preprocess(self, question: str | None, identity: str) -> PreProcessResult:
        """Run the input guardrails for one request.

        Args:
            question: Raw question text.
            identity: Caller principal, used for rate limiting.

        Returns:
            PreProcessResult; rejections carry a typed reason and message.
        """
        checked = self.input_validator.validate(question)
        if not checked.valid or checked.sanitized_question is None:
            reason = checked.reason or RejectionReason.EMPTY
            logger.info("guardrail_input_rejected", identity=identity, reason=reason.value)
            return self._reject(reason, checked.error or "Invalid question")

        sanitized = checked.sanitized_question

        verdict = self.injection_detector.detect(sanitized)
        if verdict.is_injection:
            logger.warning(
                "guardrail_blocked",
                identity=identity,
                reason=RejectionReason.INJECTION.value,
                category=verdict.matched_category,
                rule=verdict.matched_rule,
            )
            return self._reject(
                RejectionReason.INJECTION,
                INJECTION_MESSAGE,
                matched_category=verdict.matched_category,
            )

        pii = self.pii_scanner.scan(sanitized)
        if pii.has_pii:
            logger.warning(
                "guardrail_blocked",
                identity=identity,
                reason=RejectionReason.PII.value,
                category=pii.category,
            )
            return self._reject(
                RejectionReason.PII,
                f"Blocked: question contains sensitive personal information ({pii.category})",
                matched_category=pii.category,
            )

        if not self.rate_limiter.consume(identity):
            logger.warning("rate_limit_exceeded", identity=identity)
            return self._reject(RejectionReason.RATE_LIMITED, RATE_LIMIT_MESSAGE)

        self.observer.record_event("guardrail", {"type": "input", "action": "allowed"})
        return PreProcessResult.allow(sanitized)

    def postprocess(self, result: LLMAnalysisResult | None, identity: str) -> PostProcessResult:
        """Validate a model answer, substituting a fallback when invalid.

        Args:
            result: Raw model answer.
            identity: Caller principal, for logging.

        Returns:
            PostProcessResult whose response is always populated.
        """
        checked = self.output_validator.validate(result)
        if not checked.valid or result is None:
            logger.warning("guardrail_output_fallback", identity=identity, reason=checked.reason)
            self.observer.record_event("guardrail", {"type": "output", "action": "fallback"})
            return PostProcessResult(valid=False, response=FALLBACK_RESPONSE, reason=checked.reason)

        confidence = ConfidenceLevel.parse(result.confidence) or ConfidenceLevel.LOW
        normalized = LLMAnalysisResult(
            summary=result.summary.strip(),
            confidence=confidence.value,
            reasoning=result.reasoning,
        )
        self.observer.record_event("guardrail", {"type": "output", "action": "passed"})
        return PostProcessResult(valid=True, response=normalized)

    def handle_error(self, error: BaseException, identity: str) -> LLMAnalysisResult:
        """Convert a failed analysis into the fixed error fallback.

        Args:
            error: The exception raised during analysis.
            identity: Caller principal, for logging.

        Returns:
            A low-confidence fallback answer. Never raises.
        """
        logger.error(
            "analysis_error",
            identity=identity,
            error_type=type(error).__name__,
            error=str(error),
        )
        self.observer.record_event("guardrail", {"type": "error", "action": "fallback"})
        return ERROR_RESPONSE

    def _reject(
        self,
        reason: RejectionReason,
        message: str,
        matched_category: str | None = None,
    ) -> PreProcessResult:
        self.observer.record_event(
            "guardrail", {"type": "input", "action": "blocked", "reason": reason.value}
        )
        return PreProcessResult.reject(reason, message, matched_category=matched_category)
