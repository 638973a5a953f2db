"""Grounding verification - lexical support of an answer by its context.

The verifier extracts significant terms and numbers from the answer
and measures how many of them appear in the context the model was
given. Numbers are the strongest hallucination signal, so every number
in the answer counts as a term.

The result is advisory. Callers log and count it; it never blocks a
response.
"""

from __future__ import annotations

import re

from insightguard.core.domain_types import GroundingResult

DEFAULT_THRESHOLD = 0.3

_WORD = re.compile(r"[a-z][a-z'-]*[a-z]|[a-z]")
_NUMBER = re.compile(r"\d+(?:[.,]\d+)*")

STOPWORDS: frozenset[str] = frozenset(
    {
        "the", "and", "are", "was", "were", "been", "being", "have", "has", "had",
        "does", "did", "will", "would", "could", "should", "may", "might", "must",
        "shall", "for", "with", "from", "into", "through", "during", "before",
        "after", "but", "nor", "yet", "this", "that", "these", "those", "there",
        "their", "they", "them", "than", "then", "which", "what", "when", "where",
        "who", "whom", "why", "how", "not", "all", "any", "some", "most", "more",
        "less", "other", "such", "only", "also", "very", "can", "its", "our",
        "your", "you", "about", "across", "based", "data", "shows", "show",
        "indicate", "indicates", "suggest", "suggests", "appears", "overall",
        "while", "however", "each", "per", "between", "among", "both", "over",
        "under", "within", "without", "here", "provided", "analysis", "records",
        "record", "high", "low", "medium", "number", "total",
    }
)


def _normalize(word: str) -> str:
    if len(word) > 4 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def extract_terms(text: str, min_length: int = 3) -> set[str]:
    """Extract significant, normalised terms from text.

    Args:
        text: Text to tokenise.
        min_length: Minimum word length to keep.

    Returns:
        Set of lower-cased words (stopwords removed) and numbers.

    Examples:
        >>> sorted(extract_terms("The Southeast region has 42 members"))
        ['42', 'member', 'region', 'southeast']
    """
    lowered = text.lower()
    terms = {
        _normalize(w)
        for w in _WORD.findall(lowered)
        if len(w) >= min_length and w not in STOPWORDS
    }
    terms.update(n.replace(",", "") for n in _NUMBER.findall(lowered))
    return terms


class GroundingVerifier:
    """Estimates whether an answer is supported by its evidence.

    Attributes:
        threshold: Minimum support score to count as grounded.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")
        self.threshold = threshold

    def check(self, context: str, summary: str) -> GroundingResult:
        """Score the summary against the context.

        Args:
            context: The (redacted) context supplied to the model.
            summary: The model's answer.

        Returns:
            GroundingResult with score in [0, 1].
        """
        claims = extract_terms(summary or "")
        if not claims:
            return GroundingResult(grounded=True, score=1.0, reason="No verifiable claims")

        evidence = extract_terms(context or "", min_length=1)
        unsupported = sorted(claims - evidence)
        score = round((len(claims) - len(unsupported)) / len(claims), 4)

        if score >= self.threshold:
            return GroundingResult(grounded=True, score=score)

        return GroundingResult(
            grounded=False,
            score=score,
            reason=f"Unsupported terms: {', '.join(unsupported[:5])}",
        )
