"""Pattern rule tables for injection and PII detection.

Rules are plain data: a pattern, a category and a verdict. Detectors
iterate over the tables and never hard-code phrases, so new rules can
be added (or loaded from YAML) without touching control flow.

Built-in tables are loaded at import time and treated as read-only.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from insightguard.core.exceptions import RuleLoadError


class RuleCategory(str, Enum):
    """What a rule detects."""

    INJECTION = "injection"
    PII_SSN = "pii-ssn"
    PII_EMAIL = "pii-email"
    PII_PHONE = "pii-phone"
    PII_CARD = "pii-card"

    @property
    def is_pii(self) -> bool:
        """Whether this category is a PII identifier."""
        return self.value.startswith("pii-")

    @property
    def short_name(self) -> str:
        """Category without the pii- prefix, e.g. "ssn"."""
        return self.value.removeprefix("pii-")


class PatternRule(NamedTuple):
    """A single detection rule.

    Attributes:
        pattern: Regular expression, or a literal phrase when keyword is True.
        category: What the rule detects.
        verdict: Injection sub-type, or the redaction marker for PII rules.
        description: Human-readable description.
        keyword: Treat pattern as a literal phrase instead of a regex.
    """

    pattern: str
    category: RuleCategory
    verdict: str
    description: str = ""
    keyword: bool = False

    @property
    def regex(self) -> re.Pattern[str]:
        """Compiled, case-insensitive matcher for this rule."""
        source = re.escape(self.pattern) if self.keyword else self.pattern
        return re.compile(source, re.IGNORECASE)

    def search(self, text: str) -> re.Match[str] | None:
        """Return the first match of this rule in text."""
        return self.regex.search(text)


class RuleSet(NamedTuple):
    """Injection and PII rule tables used by the detectors."""

    injection: tuple[PatternRule, ...]
    pii: tuple[PatternRule, ...]


def _injection(pattern: str, verdict: str, description: str) -> PatternRule:
    return PatternRule(pattern, RuleCategory.INJECTION, verdict, description)


INJECTION_RULES: tuple[PatternRule, ...] = (
    # Instruction override
    _injection(
        r"\bignore\s+(?:all\s+|any\s+|your\s+|the\s+|of\s+)*"
        r"(?:previous\s+|prior\s+|above\s+|earlier\s+|preceding\s+)?"
        r"(?:instructions|prompts?|rules|directions|guidelines)\b",
        "instruction_override",
        "Ignore previous/all instructions",
    ),
    _injection(
        r"\bdisregard\s+(?:all\s+|any\s+|your\s+|the\s+)*"
        r"(?:previous\s+|prior\s+|above\s+|earlier\s+)?"
        r"(?:instructions|prompts?|rules|directions|guidelines)\b",
        "instruction_override",
        "Disregard previous instructions",
    ),
    _injection(
        r"\bforget\s+(?:everything|all\s+(?:previous|prior)|your\s+(?:instructions|rules|training))",
        "instruction_override",
        "Forget instructions",
    ),
    _injection(
        r"\boverride\s+(?:your\s+|the\s+|all\s+)?"
        r"(?:instructions|rules|safety|guardrails|system\s+prompt)\b",
        "instruction_override",
        "Override instructions",
    ),
    # Role manipulation
    _injection(r"(?:^|[\s\[<{(\"'])system\s*:", "role_manipulation", "Fake system turn"),
    _injection(
        r"\[/?(?:system|inst)\]|<\|?(?:system|im_start|im_end)\|?>",
        "role_manipulation",
        "Chat template markers",
    ),
    _injection(r"\byou\s+are\s+now\b", "role_manipulation", "You are now ..."),
    _injection(
        r"\bpretend\s+(?:to\s+be|you\s+are|that\s+you\s+are)\b",
        "role_manipulation",
        "Pretend to be ...",
    ),
    _injection(
        r"\bact\s+as\s+(?:an?\s+)?(?:unrestricted|unfiltered|uncensored|different|new)\b",
        "role_manipulation",
        "Act as an unrestricted model",
    ),
    _injection(r"\bfrom\s+now\s+on,?\s+you\b", "role_manipulation", "From now on you ..."),
    _injection(r"\bnew\s+instructions\s*:", "role_manipulation", "New instructions block"),
    # Jailbreak markers
    _injection(r"\bDAN\s+mode\b", "jailbreak", "DAN mode"),
    _injection(r"\bdo\s+anything\s+now\b", "jailbreak", "Do Anything Now"),
    _injection(r"\bjailbr(?:eak|oken)", "jailbreak", "Jailbreak keyword"),
    _injection(
        r"\bbypass\s+(?:all\s+|any\s+|the\s+|your\s+)*"
        r"(?:restrictions|filters|safety|guardrails|rules|content\s+polic(?:y|ies))\b",
        "jailbreak",
        "Bypass restrictions",
    ),
    _injection(
        r"\benable\s+(?:unrestricted|developer|god|admin)\s+mode\b",
        "jailbreak",
        "Enable unrestricted mode",
    ),
    _injection(r"\bdeveloper\s+mode\b", "jailbreak", "Developer mode"),
    # Prompt exfiltration
    _injection(
        r"\b(?:reveal|show|print|repeat|output|leak)\s+(?:me\s+)?(?:your|the)\s+"
        r"(?:system\s+|initial\s+|hidden\s+)?(?:prompt|instructions)\b",
        "prompt_leak",
        "Reveal system prompt",
    ),
)


# Order matters: the first matching rule names the category, and card
# numbers must be classified before the shorter phone pattern.
PII_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        pattern=r"\d{3}-\d{2}-\d{4}",
        category=RuleCategory.PII_SSN,
        verdict="[REDACTED_SSN]",
        description="Social Security Number",
    ),
    PatternRule(
        pattern=r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}",
        category=RuleCategory.PII_EMAIL,
        verdict="[REDACTED_EMAIL]",
        description="Email address",
    ),
    PatternRule(
        pattern=r"\b(?:\d{4}[\s-]?){3}\d{4}\b",
        category=RuleCategory.PII_CARD,
        verdict="[REDACTED_CARD]",
        description="Credit card number",
    ),
    PatternRule(
        pattern=r"(?:\+?1[-.\s]?)?\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b",
        category=RuleCategory.PII_PHONE,
        verdict="[REDACTED_PHONE]",
        description="Phone number",
    ),
)


def default_rules() -> RuleSet:
    """Return the built-in rule tables."""
    return RuleSet(injection=INJECTION_RULES, pii=PII_RULES)


def _parse_rule(entry: Any, default_category: RuleCategory) -> PatternRule:
    if isinstance(entry, str):
        entry = {"pattern": entry, "keyword": True}
    if not isinstance(entry, dict) or not entry.get("pattern"):
        raise RuleLoadError(f"Rule entry must define a pattern: {entry!r}")

    try:
        category = RuleCategory(entry.get("category", default_category.value))
    except ValueError:
        raise RuleLoadError(f"Unknown rule category: {entry.get('category')}") from None

    if category.is_pii != default_category.is_pii:
        raise RuleLoadError(f"Category {category.value} not allowed in this section")

    verdict = entry.get("verdict")
    if not verdict:
        verdict = f"[REDACTED_{category.short_name.upper()}]" if category.is_pii else "custom"

    rule = PatternRule(
        pattern=str(entry["pattern"]),
        category=category,
        verdict=str(verdict),
        description=str(entry.get("description", "")),
        keyword=bool(entry.get("keyword", False)),
    )
    try:
        rule.regex
    except re.error as e:
        raise RuleLoadError(f"Invalid pattern {rule.pattern!r}: {e}") from e
    return rule


def load_rules(path: str | Path, base: RuleSet | None = None) -> RuleSet:
    """Load extra rules from a YAML file and append them to a base set.

    The file has two optional sections, ``injection`` and ``pii``, each
    a list of rule mappings (or bare strings, treated as keywords).

    Args:
        path: Path to the YAML rule file.
        base: Rule set to extend. Defaults to the built-in tables.

    Returns:
        The combined RuleSet.

    Raises:
        RuleLoadError: If the file is unreadable or a rule is invalid.

    Examples:
        >>> rules = load_rules("guardrails.yaml")  # doctest: +SKIP
        >>> len(rules.injection) > len(INJECTION_RULES)  # doctest: +SKIP
        True
    """
    base = base or default_rules()
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise RuleLoadError(f"Failed to read rule file {path}: {e}") from e

    if not isinstance(data, dict):
        raise RuleLoadError(f"Rule file {path} must contain a mapping")

    injection = tuple(_parse_rule(e, RuleCategory.INJECTION) for e in data.get("injection") or [])
    pii = tuple(_parse_rule(e, RuleCategory.PII_SSN) for e in data.get("pii") or [])

    return RuleSet(injection=base.injection + injection, pii=base.pii + pii)
