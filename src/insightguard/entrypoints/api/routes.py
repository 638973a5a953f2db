"""API routes for the analysis service."""

from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from insightguard.adapters.metrics import InMemoryObserver
from insightguard.core.domain_types import (
    AnalyzeRequest,
    AuthenticatedUser,
    Insight,
    RejectionReason,
)
from insightguard.core.exceptions import GuardrailRejection
from insightguard.core.orchestrator import AnalysisOrchestrator
from insightguard.safety import ResilientModelCall

from .deps import get_metrics, get_orchestrator
from .middleware.jwt_auth import verify_jwt

api_router = APIRouter()

REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.EMPTY: 422,
    RejectionReason.TOO_SHORT: 422,
    RejectionReason.INJECTION: 400,
    RejectionReason.PII: 400,
    RejectionReason.RATE_LIMITED: 429,
}


def rejection_response(
    rejection: GuardrailRejection,
    orchestrator: AnalysisOrchestrator,
    identity: str,
) -> JSONResponse:
    """Map a guardrail rejection to a client-facing error response.

    Args:
        rejection: The raised rejection.
        orchestrator: Orchestrator, used to read the caller's retry window.
        identity: Caller principal.

    Returns:
        JSON response with the message and reason code in the body.
    """
    reason = rejection.reason or RejectionReason.EMPTY
    headers: dict[str, str] | None = None
    if reason == RejectionReason.RATE_LIMITED:
        retry = orchestrator.guardrails.rate_limiter.retry_after(identity)
        headers = {"Retry-After": str(max(1, math.ceil(retry)))}
    return JSONResponse(
        status_code=REJECTION_STATUS.get(reason, 400),
        content={"detail": str(rejection), "reason": reason.value},
        headers=headers,
    )


@api_router.post("/agent/analyze", response_model=Insight, status_code=201)
async def analyze(
    request: AnalyzeRequest,
    user: AuthenticatedUser = Depends(verify_jwt),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> Insight | JSONResponse:
    """Answer a business question about members and locations.

    Rejected questions return 422 (empty or too short), 400 (injection
    or PII) or 429 (rate limited). Model failures still return 201 with
    a low-confidence fallback answer.
    """
    try:
        return await orchestrator.analyze(request, user)
    except GuardrailRejection as e:
        return rejection_response(e, orchestrator, user.user_id)


@api_router.get("/agent/circuit")
async def circuit_status(
    user: AuthenticatedUser = Depends(verify_jwt),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Report the model circuit breaker state and call statistics."""
    model = orchestrator.model
    if not isinstance(model, ResilientModelCall):
        return {"provider": model.get_name(), "state": "unprotected"}
    return {"provider": model.get_name(), **model.stats()}


@api_router.get("/agent/metrics")
async def metrics_snapshot(
    user: AuthenticatedUser = Depends(verify_jwt),
    metrics: InMemoryObserver = Depends(get_metrics),
) -> dict[str, Any]:
    """Return the in-process guardrail and circuit counters."""
    return {"events": metrics.snapshot()}
