"""Risk, severity and caller-context domain models.

These enums and frozen dataclasses are shared by the Safety Gate and the
Orchestrator. Callers pass an ``AuthContext``; the feature lookup returns
``UserFeatures`` which can refine it.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class RiskLevel(Enum):
    """Caller risk level as recorded by the feature store."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(Enum):
    """Severity attached to a safety verdict."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CrisisSeverity(Enum):
    """Severity band derived from a crisis score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    IMMINENT = "imminent"


class RecommendedAction(Enum):
    """Action recommended for a crisis score."""
    MONITOR = "monitor"
    ESCALATE = "escalate"
    EMERGENCY = "emergency"     # Bypass every target, show crisis resources


class CrisisType(Enum):
    """Crisis label set by the first matching intent pattern family."""
    SUICIDE = "suicide"
    SELF_HARM = "self-harm"
    VIOLENCE = "violence"
    NONE = "none"


@dataclass(frozen=True)
class ConsentFlags:
    """Per-user consent toggles."""
    data_collection: bool = False
    model_training: bool = False
    analytics: bool = False
    mental_health_features: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConsentFlags":
        """Build from a camelCase or snake_case mapping."""
        data = data or {}
        return cls(
            data_collection=bool(data.get("data_collection", data.get("dataCollection", False))),
            model_training=bool(data.get("model_training", data.get("modelTraining", False))),
            analytics=bool(data.get("analytics", False)),
            mental_health_features=bool(
                data.get("mental_health_features", data.get("mentalHealthFeatures", False))
            ),
        )


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller as handed over by the gateway."""
    user_id: str
    session_id: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    consent_flags: ConsentFlags = field(default_factory=ConsentFlags)

    def with_features(self, features: "UserFeatures") -> "AuthContext":
        """Return a copy refined by feature-store values."""
        return replace(
            self,
            risk_level=features.risk_level,
            consent_flags=features.consent_flags,
        )


@dataclass(frozen=True)
class UserFeatures:
    """Feature-store view of a user, consumed by gate and orchestrator."""
    user_id: str
    risk_level: RiskLevel = RiskLevel.LOW
    consent_flags: ConsentFlags = field(default_factory=ConsentFlags)
    attributes: Dict[str, Any] = field(default_factory=dict)
