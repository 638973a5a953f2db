"""Analysis Orchestrator - Guarded question answering.

This module implements the analysis workflow:
1. Pre-process the question (REJECT on any input guardrail)
2. Fetch membership and location records (in parallel)
3. Build and redact the context
4. Ask the model through the circuit breaker
5. Verify grounding (advisory) and post-process the answer

The orchestrator coordinates all components but contains no
infrastructure-specific code - it only uses the protocol interfaces.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from .domain_types import ConfidenceLevel, DataPoints, Insight, SearchCriteria
from .exceptions import GuardrailRejection

if TYPE_CHECKING:
    from insightguard.safety.grounding import GroundingVerifier
    from insightguard.safety.guardrails import GuardrailsOrchestrator

    from .domain_types import AnalyzeRequest, AuthenticatedUser, GroundingResult
    from .interfaces import LLMProvider, MetricsObserver, RecordSearch, Redactor

logger = structlog.get_logger()


SYSTEM_PROMPT = """You are a business analyst answering questions about member enrollment
and location performance.

Rules:
- Answer ONLY from the data provided in the context. Do not invent figures.
- Cite the counts and distributions you rely on.
- Never attempt to identify individual people; the data is redacted on purpose.
- If the data is insufficient, say so and use low confidence.

Respond with a concise summary, a confidence level (high, medium or low)
and a short explanation of your reasoning."""

MEMBER_SAMPLE_SIZE = 5
LOCATION_SAMPLE_SIZE = 3

# Histogram bucket upper bounds for analysis latency, in seconds.
DURATION_BUCKETS = (0.5, 1.0, 2.0, 5.0, 10.0, 30.0)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Configuration for the analysis orchestrator.

    Attributes:
        member_limit: Default number of membership records to fetch.
        location_limit: Default number of location records to fetch.
        system_prompt: System instructions sent with every question.
    """

    member_limit: int = 100
    location_limit: int = 50
    system_prompt: str = SYSTEM_PROMPT


def duration_bucket(seconds: float) -> str:
    """Return the label of the smallest bucket holding a duration.

    Durations above the last bound fall into "+Inf", so the number of
    distinct labels never exceeds len(DURATION_BUCKETS) + 1.

    Examples:
        >>> duration_bucket(0.2)
        '0.5'
        >>> duration_bucket(7)
        '10'
        >>> duration_bucket(45)
        '+Inf'
    """
    for bound in DURATION_BUCKETS:
        if seconds <= bound:
            return f"{bound:g}"
    return "+Inf"


def _distribution(records: list[dict[str, Any]], key: Any) -> dict[str, int]:
    return dict(Counter(key(r) for r in records))


def summarize_members(members: list[dict[str, Any]]) -> str:
    """Summarise membership records by status."""
    if not members:
        return "No membership records found."

    def status(member: dict[str, Any]) -> str:
        notes = str(member.get("status_notes") or "").split()
        return notes[0] if notes else "unknown"

    return (
        f"Status distribution: {json.dumps(_distribution(members, status))}\n"
        f"Sample records: {json.dumps(members[:MEMBER_SAMPLE_SIZE], default=str)}"
    )


def summarize_locations(locations: list[dict[str, Any]]) -> str:
    """Summarise location records by region."""
    if not locations:
        return "No location records found."

    def region(location: dict[str, Any]) -> str:
        return str(location.get("region") or "unknown")

    return (
        f"Region distribution: {json.dumps(_distribution(locations, region))}\n"
        f"Sample records: {json.dumps(locations[:LOCATION_SAMPLE_SIZE], default=str)}"
    )


def build_context(
    members: list[dict[str, Any]],
    locations: list[dict[str, Any]],
    location_focus: str | None = None,
) -> str:
    """Build the model context from fetched records.

    Args:
        members: Membership records.
        locations: Location records.
        location_focus: Optional location ID to call out.

    Returns:
        Plain-text context block.
    """
    sections = [
        f"MEMBERSHIP DATA ({len(members)} records):\n{summarize_members(members)}",
        f"LOCATION DATA ({len(locations)} records):\n{summarize_locations(locations)}",
    ]
    if location_focus:
        sections.append(f"FOCUS: Location ID {location_focus}")
    return "\n\n".join(sections)


class AnalysisOrchestrator:
    """Orchestrates guarded analysis of a business question.

    Flow: preprocess -> fetch context -> redact -> model -> grounding -> postprocess

    Every path returns through postprocess or handle_error, except input
    rejections, which raise GuardrailRejection with a typed reason.
    """

    def __init__(
        self,
        model: LLMProvider,
        member_search: RecordSearch,
        location_search: RecordSearch,
        redactor: Redactor,
        guardrails: GuardrailsOrchestrator,
        grounding: GroundingVerifier,
        observer: MetricsObserver,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            model: Model provider, normally a ResilientModelCall.
            member_search: Search collaborator for membership records.
            location_search: Search collaborator for location records.
            redactor: Redactor applied to the outbound context.
            guardrails: Input/output guardrails.
            grounding: Grounding verifier.
            observer: Metrics sink.
            config: Optional orchestrator configuration.
        """
        self.model = model
        self.member_search = member_search
        self.location_search = location_search
        self.redactor = redactor
        self.guardrails = guardrails
        self.grounding = grounding
        self.observer = observer
        self.config = config or OrchestratorConfig()

    async def analyze(self, request: AnalyzeRequest, user: AuthenticatedUser) -> Insight:
        """Answer a question with guardrails.

        Args:
            request: The question and optional focus/limit.
            user: Authenticated caller.

        Returns:
            Insight - the validated answer or a low-confidence fallback.

        Raises:
            GuardrailRejection: If the question fails an input guardrail.
        """
        start_time = time.monotonic()
        provider_name = self.model.get_name()

        pre = self.guardrails.preprocess(request.question, user.user_id)
        if not pre.allowed or pre.sanitized_question is None:
            self.observer.record_event(
                "analysis", {"provider": provider_name, "status": "rejected"}
            )
            raise GuardrailRejection.from_result(pre)

        question = pre.sanitized_question
        log = logger.bind(
            user_id=user.user_id,
            tenant_id=user.tenant_id,
            provider=provider_name,
        )

        try:
            member_limit = request.result_limit or self.config.member_limit
            location_limit = request.result_limit or self.config.location_limit
            members, locations = await asyncio.gather(
                self.member_search.search(SearchCriteria(limit=member_limit), user),
                self.location_search.search(
                    SearchCriteria(limit=location_limit, location_id=request.location_focus),
                    user,
                ),
            )

            context = self.redactor.redact(
                build_context(members, locations, request.location_focus)
            )

            result = await self.model.analyze(question, context, self.config.system_prompt)

            grounding = self._verify_grounding(context, result.summary, log)

            post = self.guardrails.postprocess(result, user.user_id)
            answer = post.response

            insight = Insight(
                question=request.question,
                summary=answer.summary,
                confidence=ConfidenceLevel.parse(answer.confidence) or ConfidenceLevel.LOW,
                reasoning=answer.reasoning,
                data_points=DataPoints(
                    records_analyzed_by_kind={
                        "members": len(members),
                        "locations": len(locations),
                    }
                ),
                generated_at=datetime.now(UTC),
                provider_name=provider_name,
                grounding=grounding,
            )

            self.observer.record_event(
                "analysis", {"provider": provider_name, "status": "success"}
            )
            log.info(
                "Analysis completed",
                members_analyzed=len(members),
                locations_analyzed=len(locations),
                confidence=insight.confidence.value,
                output_valid=post.valid,
            )
            return insight

        except Exception as e:
            log.exception("Analysis failed")
            self.observer.record_event("analysis", {"provider": provider_name, "status": "error"})
            fallback = self.guardrails.handle_error(e, user.user_id)
            return Insight(
                question=request.question,
                summary=fallback.summary,
                confidence=ConfidenceLevel.LOW,
                reasoning=fallback.reasoning,
                data_points=DataPoints(records_analyzed_by_kind={"members": 0, "locations": 0}),
                generated_at=datetime.now(UTC),
                provider_name=provider_name,
            )

        finally:
            self.observer.record_event(
                "analysis_duration",
                {"le": duration_bucket(time.monotonic() - start_time)},
            )

    def _verify_grounding(
        self,
        context: str,
        summary: str,
        log: Any,
    ) -> GroundingResult:
        """Run the advisory grounding check and record the outcome."""
        result = self.grounding.check(context, summary)
        if result.grounded:
            self.observer.record_event("grounding", {"result": "grounded"})
        else:
            self.observer.record_event("grounding", {"result": "ungrounded"})
            log.warning(
                "Response failed grounding check",
                score=result.score,
                reason=result.reason,
            )
        return result
