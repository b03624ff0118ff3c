"""Rule-based content moderation.

Covers profanity, harmful advice, PII, crisis-language echo and
prohibited instruction requests. Used both on inbound queries and on
model output; ``moderate_output`` additionally produces a cleaned copy.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from harbor.shared.models import Severity
from harbor.shared.utils import redact_pii
from .config import (
    CRISIS_ECHO_PATTERNS,
    HARMFUL_ADVICE_CONFIDENCE,
    HARMFUL_ADVICE_PATTERNS,
    PII_CONFIDENCE,
    PROFANITY_CONFIDENCE,
    PROFANITY_WORDS,
    PROHIBITED_TERMS,
    SEVERITY_WEIGHTS,
)

_PII_PATTERNS = [
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    re.compile(r"\b\d{10,}\b"),
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    re.compile(r"\b\d{4}[- ]?\d{4}[- ]?\d{4}[- ]?\d{4}\b"),
]


@dataclass(frozen=True)
class ModerationResult:
    """Outcome of a moderation pass."""
    flagged: bool
    categories: List[str] = field(default_factory=list)
    confidence: float = 0.0
    cleaned_content: Optional[str] = None
    explanation: Optional[str] = None


def severity_for(categories: Iterable[str]) -> Severity:
    """Map flagged categories to a verdict severity (highest weight wins)."""
    weight = max((SEVERITY_WEIGHTS.get(c, 0) for c in categories), default=0)
    if weight >= 5:
        return Severity.CRITICAL
    if weight >= 4:
        return Severity.HIGH
    if weight >= 2:
        return Severity.MEDIUM
    return Severity.LOW


class ContentModerator:
    """Pattern-based moderation for queries and model output."""

    def __init__(
        self,
        profanity: Sequence[str] = PROFANITY_WORDS,
        prohibited_terms: Sequence[str] = PROHIBITED_TERMS,
    ):
        self._profanity = [
            re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE) for word in profanity
        ]
        self._prohibited_terms = [term.lower() for term in prohibited_terms]
        self._harmful_advice = [re.compile(p, re.IGNORECASE) for p in HARMFUL_ADVICE_PATTERNS]
        self._crisis_echo = [re.compile(p, re.IGNORECASE) for p in CRISIS_ECHO_PATTERNS]

    def has_profanity(self, text: str) -> bool:
        return any(p.search(text) for p in self._profanity)

    def has_pii(self, text: str) -> bool:
        return any(p.search(text) for p in _PII_PATTERNS)

    def has_harmful_advice(self, text: str) -> bool:
        return any(p.search(text) for p in self._harmful_advice)

    def echoes_crisis_language(self, text: str) -> bool:
        """True when text affirms or encourages crisis thinking."""
        return any(p.search(text) for p in self._crisis_echo)

    def find_prohibited_terms(self, text: str) -> List[str]:
        lowered = text.lower()
        return [term for term in self._prohibited_terms if term in lowered]

    def mask_profanity(self, text: str) -> str:
        cleaned = text
        for pattern in self._profanity:
            cleaned = pattern.sub(lambda m: "*" * len(m.group(0)), cleaned)
        return cleaned

    def moderate(self, content: str) -> ModerationResult:
        """Classify content; confidence is the highest category confidence."""
        categories = []
        confidence = 0.0

        if self.has_profanity(content):
            categories.append("profanity")
            confidence = max(confidence, PROFANITY_CONFIDENCE)

        if self.has_harmful_advice(content):
            categories.append("harmful-advice")
            confidence = max(confidence, HARMFUL_ADVICE_CONFIDENCE)

        if self.has_pii(content):
            categories.append("pii")
            confidence = max(confidence, PII_CONFIDENCE)

        return ModerationResult(
            flagged=bool(categories),
            categories=categories,
            confidence=confidence,
        )

    def moderate_output(self, content: str) -> ModerationResult:
        """Moderate model output and produce a cleaned copy when flagged.

        Profanity is masked with asterisks; PII is replaced with
        ``[REDACTED-*]`` markers.
        """
        categories = []
        confidence = 0.0
        cleaned = content

        if self.has_profanity(content):
            categories.append("profanity")
            confidence = max(confidence, PROFANITY_CONFIDENCE)
            cleaned = self.mask_profanity(cleaned)

        if self.has_pii(content):
            categories.append("pii")
            confidence = max(confidence, PII_CONFIDENCE)
            cleaned = redact_pii(cleaned)

        if not categories:
            return ModerationResult(flagged=False)

        return ModerationResult(
            flagged=True,
            categories=categories,
            confidence=confidence,
            cleaned_content=cleaned,
            explanation=f"Content was flagged for: {', '.join(categories)}",
        )
