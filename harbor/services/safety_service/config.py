"""Safety Gate configuration, crisis keyword weights and moderation tables.

Scores are additive: every matched keyword contributes its weight, the
first matching intent-pattern family adds a bonus, and high-risk callers
get a multiplier. Thresholds map the total onto a severity band.
"""
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class CrisisThresholds:
    """Score thresholds for the crisis severity bands.

    score >= imminent -> imminent / emergency
    score >= high     -> high / escalate
    score >= medium   -> medium / escalate (also the is-crisis cutoff)
    """
    medium: float = 6.0
    high: float = 10.0
    imminent: float = 15.0

    def __post_init__(self):
        if not 0 < self.medium <= self.high <= self.imminent:
            raise ValueError(
                "Crisis thresholds must satisfy 0 < medium <= high <= imminent, "
                f"got {self.medium}/{self.high}/{self.imminent}"
            )

    @classmethod
    def from_string(cls, value: str) -> "CrisisThresholds":
        """Parse ``"medium,high,imminent"`` (e.g. ``"6,10,15"``)."""
        parts = [p.strip() for p in value.split(",") if p.strip()]
        if len(parts) != 3:
            raise ValueError(f"Expected three comma-separated thresholds, got {value!r}")
        medium, high, imminent = (float(p) for p in parts)
        return cls(medium=medium, high=high, imminent=imminent)


@dataclass(frozen=True)
class SafetyConfig:
    """Configuration for crisis scoring and query/response gating."""

    thresholds: CrisisThresholds = field(default_factory=CrisisThresholds)

    # Applied to the total when the caller's risk level is high
    high_risk_multiplier: float = 1.5

    # Intent-pattern bonuses, checked in this order
    suicide_pattern_bonus: float = 15.0
    self_harm_pattern_bonus: float = 12.0
    violence_pattern_bonus: float = 10.0

    # confidence = min(score / divisor, 1.0)
    confidence_divisor: float = 20.0

    # Moderation flags above this confidence block a query
    moderation_block_confidence: float = 0.8

    # Escalation queue bound (oldest entry evicted first)
    escalation_capacity: int = 1000

    # Redacted preview length stored in escalation entries and logs
    preview_length: int = 200

    # Version tracking for audit trail
    pattern_version: str = "2026.10.01"

    def __post_init__(self):
        if self.high_risk_multiplier < 1.0:
            raise ValueError("high_risk_multiplier must be >= 1.0")
        if self.confidence_divisor <= 0:
            raise ValueError("confidence_divisor must be positive")
        if self.escalation_capacity < 1:
            raise ValueError("escalation_capacity must be at least 1")


# Weighted crisis keywords (phrase -> severity 1-10), matched as
# case-insensitive substrings
CRISIS_KEYWORDS: Dict[str, int] = {
    # Suicide ideation
    "kill myself": 10,
    "end my life": 10,
    "suicide": 9,
    "suicidal": 9,
    "want to die": 10,
    "better off dead": 9,
    "no reason to live": 9,
    "end it all": 9,
    "can't go on": 8,
    "hopeless": 7,

    # Self-harm
    "cut myself": 9,
    "hurt myself": 8,
    "self-harm": 8,
    "cutting": 7,
    "burning myself": 9,
    "overdose": 9,

    # Violence
    "hurt others": 9,
    "kill them": 10,
    "shoot up": 10,
    "bomb": 10,
    "violence": 6,
    "revenge": 5,

    # Distress indicators
    "depressed": 5,
    "worthless": 6,
    "useless": 5,
    "failure": 4,
    "lonely": 4,
    "isolated": 4,
    "overwhelmed": 4,
    "can't cope": 6,
}

# Intent pattern families, checked by descending severity
SUICIDE_PATTERNS: Tuple[str, ...] = (
    r"i (?:want to|going to|plan to) (?:kill myself|end my life|die)",
    r"(?:thinking about|thoughts of) (?:suicide|killing myself)",
    r"i (?:can't|cannot) (?:take it|go on|do this) anymore",
)

SELF_HARM_PATTERNS: Tuple[str, ...] = (
    r"i (?:cut|hurt|burn|harm) myself",
    r"thinking about (?:cutting|harming) myself",
)

VIOLENCE_PATTERNS: Tuple[str, ...] = (
    r"i (?:want to|going to|plan to) (?:hurt|kill|shoot) (?:them|him|her|someone|people|everyone)",
    r"(?:thinking about|thoughts of) (?:hurting|killing|shooting) (?:them|him|her|someone|people|others)",
)

# Instructions for harmful activities
PROHIBITED_TERMS: Tuple[str, ...] = (
    "how to make bomb",
    "how to make a bomb",
    "how to hurt",
    "how to hack",
)

# Matched on word boundaries so "hello" never trips "hell"-style entries
PROFANITY_WORDS: Tuple[str, ...] = (
    "fuck",
    "shit",
    "bitch",
    "asshole",
    "bastard",
    "putangina",
    "tangina",
    "gago",
    "ulol",
)

HARMFUL_ADVICE_PATTERNS: Tuple[str, ...] = (
    r"you should (?:kill|hurt|harm)",
    r"it's okay to (?:self-harm|cut yourself)",
    r"suicide is (?:the answer|your only option)",
    r"just (?:give up|end it all)",
)

# Responses that inappropriately echo crisis language back
CRISIS_ECHO_PATTERNS: Tuple[str, ...] = (
    r"yes,? you should (?:kill yourself|end your life)",
    r"suicide (?:is|would be) (?:the best|a good) option",
    r"you're right to feel hopeless",
)

PROFANITY_CONFIDENCE = 0.8
PII_CONFIDENCE = 0.9
HARMFUL_ADVICE_CONFIDENCE = 0.9

# Category -> weight for verdict severity
SEVERITY_WEIGHTS: Dict[str, int] = {
    "profanity": 1,
    "pii": 2,
    "harmful-advice": 4,
    "crisis-detected": 5,
}
