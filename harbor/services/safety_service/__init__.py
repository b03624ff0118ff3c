"""Safety Gate: crisis scoring, moderation and escalation.

Every query passes through the gate before routing; every model response
passes through it before reaching a user.

Components:
- scanner.py: CrisisScanner (weighted keywords + intent patterns)
- moderation.py: ContentModerator (profanity, PII, harmful advice)
- gate.py: SafetyGate (validate_query, validate_response, moderate_output)
- escalation.py: EscalationQueue for human review
- responses.py: Scripted user-facing texts
"""

from .config import CrisisThresholds, SafetyConfig
from .escalation import EscalationEntry, EscalationQueue, EscalationStatus
from .gate import MENTAL_HEALTH_CONTEXT, SafetyGate, SafetyVerdict
from .moderation import ContentModerator, ModerationResult, severity_for
from .responses import (
    DEFAULT_SAFETY_MESSAGE,
    SAFE_ALTERNATIVE_RESPONSE,
    crisis_response,
)
from .scanner import CrisisScanner, CrisisScore

__all__ = [
    "CrisisThresholds",
    "SafetyConfig",
    "EscalationEntry",
    "EscalationQueue",
    "EscalationStatus",
    "MENTAL_HEALTH_CONTEXT",
    "SafetyGate",
    "SafetyVerdict",
    "ContentModerator",
    "ModerationResult",
    "severity_for",
    "DEFAULT_SAFETY_MESSAGE",
    "SAFE_ALTERNATIVE_RESPONSE",
    "crisis_response",
    "CrisisScanner",
    "CrisisScore",
]
