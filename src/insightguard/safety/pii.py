"""PII Scanner and Redactor.

This module provides utilities for detecting and redacting
Personally Identifiable Information (PII) from text.

Inbound questions are scanned and blocked on detection. Outbound
context is redacted before it is sent to the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .rules import PII_RULES, PatternRule


@dataclass(frozen=True)
class PIIVerdict:
    """Result of a PII scan.

    Attributes:
        has_pii: Whether any identifier was found.
        category: Short name of the first category found (e.g. "ssn").
        categories: All categories found, in rule-table order.
    """

    has_pii: bool
    category: str | None = None
    categories: tuple[str, ...] = field(default_factory=tuple)


def scan_for_pii(text: str, rules: tuple[PatternRule, ...] = PII_RULES) -> list[str]:
    """Scan text for potential PII.

    Args:
        text: The text to scan.
        rules: PII rule table.

    Returns:
        List of PII types found in the text.

    Examples:
        >>> scan_for_pii("Contact: john@example.com")
        ['email']
        >>> scan_for_pii("SSN: 123-45-6789")
        ['ssn']
        >>> scan_for_pii("Hello world")
        []
    """
    found: list[str] = []
    for rule in rules:
        if rule.search(text):
            name = rule.category.short_name
            if name not in found:
                found.append(name)
    return found


def redact_pii(text: str, rules: tuple[PatternRule, ...] = PII_RULES) -> str:
    """Redact potential PII from text.

    Replaces detected PII with redaction markers.

    Args:
        text: The text to redact.
        rules: PII rule table.

    Returns:
        Text with PII redacted.

    Examples:
        >>> redact_pii("Contact: john@example.com")
        'Contact: [REDACTED_EMAIL]'
        >>> redact_pii("SSN: 123-45-6789")
        'SSN: [REDACTED_SSN]'
    """
    result = text
    for rule in rules:
        result = rule.regex.sub(rule.verdict, result)
    return result


class PIIScanner:
    """Blocks questions that contain sensitive identifiers.

    The policy is block-on-detect: a question carrying PII indicates
    misuse and is rejected outright rather than silently cleaned.
    """

    def __init__(self, rules: tuple[PatternRule, ...] | None = None) -> None:
        self.rules = rules if rules is not None else PII_RULES

    def scan(self, sanitized: str) -> PIIVerdict:
        """Scan a sanitized question for PII."""
        found = scan_for_pii(sanitized, self.rules)
        if not found:
            return PIIVerdict(has_pii=False)
        return PIIVerdict(has_pii=True, category=found[0], categories=tuple(found))


class RegexRedactor:
    """Default Redactor for outbound context, backed by the PII rules."""

    def __init__(self, rules: tuple[PatternRule, ...] | None = None) -> None:
        self.rules = rules if rules is not None else PII_RULES

    def redact(self, text: str) -> str:
        """Return text with every PII match replaced by its marker."""
        return redact_pii(text, self.rules)
