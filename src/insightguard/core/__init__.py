"""Core domain - Pure business logic with no infrastructure code."""

from .domain_types import (
    AnalyzeRequest,
    AuthenticatedUser,
    ConfidenceLevel,
    DataPoints,
    GroundingResult,
    Insight,
    LLMAnalysisResult,
    PostProcessResult,
    PreProcessResult,
    RejectionReason,
    SearchCriteria,
)
from .exceptions import (
    GuardrailRejection,
    InjectionDetected,
    InputRejected,
    InsightGuardError,
    LLMError,
    PIIDetected,
    ProviderError,
    ProviderTimeout,
    RateLimitExceeded,
    RuleLoadError,
)
from .interfaces import LLMProvider, MetricsObserver, RecordSearch, Redactor
from .orchestrator import AnalysisOrchestrator, OrchestratorConfig

__all__ = [
    # Domain types
    "AnalyzeRequest",
    "AuthenticatedUser",
    "ConfidenceLevel",
    "DataPoints",
    "GroundingResult",
    "Insight",
    "LLMAnalysisResult",
    "PostProcessResult",
    "PreProcessResult",
    "RejectionReason",
    "SearchCriteria",
    # Exceptions
    "InsightGuardError",
    "GuardrailRejection",
    "InputRejected",
    "InjectionDetected",
    "PIIDetected",
    "RateLimitExceeded",
    "LLMError",
    "ProviderError",
    "ProviderTimeout",
    "RuleLoadError",
    # Interfaces
    "LLMProvider",
    "RecordSearch",
    "Redactor",
    "MetricsObserver",
    # Orchestrator
    "AnalysisOrchestrator",
    "OrchestratorConfig",
]
