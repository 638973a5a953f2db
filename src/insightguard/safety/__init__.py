"""Safety layer - Guardrails around the model call.

This module contains all safety-related components:
- Input validation, prompt-injection detection and PII interception
- Per-identity rate limiting
- Output validation and grounding verification
- Circuit breaker for the remote model provider

Every answer returned to a caller passes through these components.
"""

from .circuit_breaker import (
    FALLBACK_RESULT,
    CircuitBreakerConfig,
    CircuitState,
    ResilientModelCall,
)
from .grounding import GroundingVerifier
from .guardrails import ERROR_RESPONSE, FALLBACK_RESPONSE, GuardrailsOrchestrator
from .injection import PromptInjectionDetector
from .input_validator import InputValidator
from .output_validator import OutputValidator
from .pii import PIIScanner, RegexRedactor, redact_pii, scan_for_pii
from .rate_limit import RateLimitConfig, RateLimiter
from .rules import PatternRule, RuleCategory, RuleSet, default_rules, load_rules

__all__ = [
    "CircuitBreakerConfig",
    "CircuitState",
    "ERROR_RESPONSE",
    "FALLBACK_RESPONSE",
    "FALLBACK_RESULT",
    "GroundingVerifier",
    "GuardrailsOrchestrator",
    "InputValidator",
    "OutputValidator",
    "PIIScanner",
    "PatternRule",
    "PromptInjectionDetector",
    "RateLimitConfig",
    "RateLimiter",
    "RegexRedactor",
    "ResilientModelCall",
    "RuleCategory",
    "RuleSet",
    "default_rules",
    "load_rules",
    "redact_pii",
    "scan_for_pii",
]
