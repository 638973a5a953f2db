"""Dependency injection and application lifespan management."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Request

from insightguard.adapters.llm import PydanticAIProvider, build_model
from insightguard.adapters.metrics import CompositeObserver, InMemoryObserver, LoggingObserver
from insightguard.adapters.search import InMemoryRecordSearch, load_seed_data
from insightguard.core.orchestrator import AnalysisOrchestrator, OrchestratorConfig
from insightguard.safety import (
    CircuitBreakerConfig,
    GroundingVerifier,
    GuardrailsOrchestrator,
    InputValidator,
    OutputValidator,
    PIIScanner,
    PromptInjectionDetector,
    RateLimitConfig,
    RateLimiter,
    RegexRedactor,
    ResilientModelCall,
    default_rules,
    load_rules,
)

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.llm_provider = os.getenv("LLM_PROVIDER", "anthropic").lower()
        self.llm_model = os.getenv("LLM_MODEL", "")
        self.llm_api_key = os.getenv("LLM_API_KEY", "")

        # Circuit breaker settings
        self.llm_timeout_seconds = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
        self.llm_circuit_reset_seconds = float(os.getenv("LLM_CIRCUIT_RESET_SECONDS", "30"))
        self.llm_circuit_error_threshold = float(
            os.getenv("LLM_CIRCUIT_ERROR_THRESHOLD", "50")
        )
        self.llm_circuit_volume_threshold = int(
            os.getenv("LLM_CIRCUIT_VOLUME_THRESHOLD", "3")
        )

        # Guardrail settings
        self.rate_limit_max_requests = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
        self.rate_limit_window_seconds = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.min_question_length = int(os.getenv("MIN_QUESTION_LENGTH", "3"))
        self.grounding_threshold = float(os.getenv("GROUNDING_THRESHOLD", "0.3"))
        self.guardrail_rules_path = os.getenv("GUARDRAIL_RULES_PATH", "")

        # Seed records for the in-memory search adapters
        self.seed_data_path = os.getenv("SEED_DATA_PATH", "")

        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")
        self.jwt_issuer = os.getenv("JWT_ISSUER", "")

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_json = os.getenv("LOG_JSON", "false").lower() == "true"


settings = Settings()


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog rendering and level filtering.

    Args:
        level: Minimum log level name.
        json_logs: Render JSON lines instead of console output.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )


def build_orchestrator(
    config: Settings,
    provider: Any = None,
    observer: InMemoryObserver | None = None,
) -> AnalysisOrchestrator:
    """Wire the analysis pipeline from settings.

    Args:
        config: Loaded settings.
        provider: Model provider. Built from LLM_PROVIDER if not provided.
        observer: Metrics sink shared by every component.

    Returns:
        A ready AnalysisOrchestrator.
    """
    observer = observer or InMemoryObserver()
    sink = CompositeObserver([observer, LoggingObserver()])

    rules = default_rules()
    if config.guardrail_rules_path:
        rules = load_rules(config.guardrail_rules_path)
        logger.info(
            "guardrail_rules_loaded",
            path=config.guardrail_rules_path,
            injection_rules=len(rules.injection),
            pii_rules=len(rules.pii),
        )

    guardrails = GuardrailsOrchestrator(
        input_validator=InputValidator(min_length=config.min_question_length),
        injection_detector=PromptInjectionDetector(rules.injection),
        pii_scanner=PIIScanner(rules.pii),
        rate_limiter=RateLimiter(
            RateLimitConfig(
                max_requests=config.rate_limit_max_requests,
                window_seconds=config.rate_limit_window_seconds,
            )
        ),
        output_validator=OutputValidator(),
        observer=sink,
    )

    if provider is None:
        provider = PydanticAIProvider(
            name=config.llm_provider,
            model=build_model(config.llm_provider, config.llm_model or None, config.llm_api_key),
        )

    model = ResilientModelCall(
        provider,
        CircuitBreakerConfig(
            timeout=config.llm_timeout_seconds,
            error_threshold_percentage=config.llm_circuit_error_threshold,
            reset_timeout=config.llm_circuit_reset_seconds,
            volume_threshold=config.llm_circuit_volume_threshold,
        ),
        observer=sink,
    )

    seed: dict[str, list[dict[str, Any]]] = {"members": [], "locations": []}
    if config.seed_data_path:
        seed = load_seed_data(config.seed_data_path)
        logger.info(
            "seed_data_loaded",
            path=config.seed_data_path,
            members=len(seed["members"]),
            locations=len(seed["locations"]),
        )

    return AnalysisOrchestrator(
        model=model,
        member_search=InMemoryRecordSearch(seed["members"]),
        location_search=InMemoryRecordSearch(seed["locations"]),
        redactor=RegexRedactor(rules.pii),
        guardrails=guardrails,
        grounding=GroundingVerifier(threshold=config.grounding_threshold),
        observer=sink,
        config=OrchestratorConfig(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    Builds the pipeline once; every request shares the same rate
    limiter and circuit breaker.
    """
    configure_logging(settings.log_level, settings.log_json)

    metrics = InMemoryObserver()
    orchestrator = build_orchestrator(settings, observer=metrics)

    app.state.orchestrator = orchestrator
    app.state.metrics = metrics
    app.state.jwt_secret_key = settings.jwt_secret_key
    app.state.jwt_issuer = settings.jwt_issuer or None

    logger.info(
        "application_started",
        provider=settings.llm_provider,
        rate_limit=settings.rate_limit_max_requests,
        rate_window_seconds=settings.rate_limit_window_seconds,
    )

    yield

    logger.info("application_stopped")


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    """Get the orchestrator from app state.

    Args:
        request: The current request.

    Returns:
        The configured AnalysisOrchestrator.
    """
    orchestrator: AnalysisOrchestrator = request.app.state.orchestrator
    return orchestrator


def get_metrics(request: Request) -> InMemoryObserver:
    """Get the in-memory metrics observer from app state."""
    metrics: InMemoryObserver = request.app.state.metrics
    return metrics
