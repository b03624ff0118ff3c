"""Crisis scanner: weighted keyword and intent-pattern scoring.

Scoring is deterministic and synchronous:
- Layer 1: weighted keyword table, summed over every substring match
- Layer 2: intent pattern families (suicide, self-harm, violence); the
  first family that matches sets the crisis type and adds its bonus
- Context: the total is multiplied for high-risk callers

The resulting score maps onto a severity band and a recommended action.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from harbor.shared.models import (
    CrisisSeverity,
    CrisisType,
    RecommendedAction,
    RiskLevel,
)
from .config import (
    CRISIS_KEYWORDS,
    SELF_HARM_PATTERNS,
    SUICIDE_PATTERNS,
    VIOLENCE_PATTERNS,
    SafetyConfig,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrisisScore:
    """Result of scoring one piece of text.

    Immutable - scores cannot be modified after creation.
    """
    score: float
    is_crisis: bool
    confidence: float
    crisis_type: CrisisType
    severity: CrisisSeverity
    recommended_action: RecommendedAction
    keywords: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 3),
            "is_crisis": self.is_crisis,
            "confidence": round(self.confidence, 3),
            "crisis_type": self.crisis_type.value,
            "severity": self.severity.value,
            "recommended_action": self.recommended_action.value,
            "keywords": self.keywords,
        }


class CrisisScanner:
    """Scores text for crisis risk using weighted keywords and patterns."""

    def __init__(
        self,
        config: Optional[SafetyConfig] = None,
        keywords: Optional[Dict[str, int]] = None,
    ):
        """Initialize scanner.

        Args:
            config: Scoring configuration (thresholds, bonuses, multiplier)
            keywords: Override for the weighted keyword table
        """
        self.config = config or SafetyConfig()
        self.keywords = dict(keywords if keywords is not None else CRISIS_KEYWORDS)

        # Checked in order; the first family that matches wins
        self._families: List[Tuple[CrisisType, float, List[re.Pattern]]] = [
            (CrisisType.SUICIDE, self.config.suicide_pattern_bonus,
             self._compile(SUICIDE_PATTERNS)),
            (CrisisType.SELF_HARM, self.config.self_harm_pattern_bonus,
             self._compile(SELF_HARM_PATTERNS)),
            (CrisisType.VIOLENCE, self.config.violence_pattern_bonus,
             self._compile(VIOLENCE_PATTERNS)),
        ]

        logger.info(
            "CRISIS_SCANNER_INITIALIZED",
            extra={
                "pattern_version": self.config.pattern_version,
                "keyword_count": len(self.keywords),
                "pattern_family_count": len(self._families),
            }
        )

    @staticmethod
    def _compile(patterns: Sequence[str]) -> List[re.Pattern]:
        return [re.compile(p, re.IGNORECASE) for p in patterns]

    def _match_keywords(self, text: str) -> Tuple[float, List[str]]:
        lowered = text.lower()
        total = 0.0
        found = []
        for keyword, weight in self.keywords.items():
            if keyword in lowered:
                total += weight
                found.append(keyword)
        return total, found

    def _match_family(self, text: str) -> Tuple[CrisisType, float]:
        for crisis_type, bonus, patterns in self._families:
            if any(p.search(text) for p in patterns):
                return crisis_type, bonus
        return CrisisType.NONE, 0.0

    def _band(self, score: float) -> Tuple[CrisisSeverity, RecommendedAction]:
        thresholds = self.config.thresholds
        if score >= thresholds.imminent:
            return CrisisSeverity.IMMINENT, RecommendedAction.EMERGENCY
        if score >= thresholds.high:
            return CrisisSeverity.HIGH, RecommendedAction.ESCALATE
        if score >= thresholds.medium:
            return CrisisSeverity.MEDIUM, RecommendedAction.ESCALATE
        return CrisisSeverity.LOW, RecommendedAction.MONITOR

    def score(self, text: str, risk_level: RiskLevel = RiskLevel.LOW) -> CrisisScore:
        """Score text for crisis risk.

        Args:
            text: Query or response text
            risk_level: Caller risk level from the auth context

        Returns:
            CrisisScore with severity band and recommended action
        """
        keyword_score, found = self._match_keywords(text)
        crisis_type, bonus = self._match_family(text)

        total = keyword_score + bonus
        if risk_level == RiskLevel.HIGH:
            total *= self.config.high_risk_multiplier

        severity, action = self._band(total)
        result = CrisisScore(
            score=total,
            is_crisis=total >= self.config.thresholds.medium,
            confidence=min(total / self.config.confidence_divisor, 1.0),
            crisis_type=crisis_type,
            severity=severity,
            recommended_action=action,
            keywords=found,
        )

        if result.is_crisis:
            logger.warning(
                "CRISIS_SCORE_ELEVATED",
                extra={
                    "score": round(total, 3),
                    "crisis_type": crisis_type.value,
                    "severity": severity.value,
                    "keyword_count": len(found),
                    "risk_level": risk_level.value,
                }
            )
        return result
