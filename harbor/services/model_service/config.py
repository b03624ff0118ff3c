"""Model execution configuration: provider kinds and target catalogue."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


class ProviderKind(Enum):
    """Closed set of provider variants."""
    OPENAI = "openai"
    GROQ = "groq"
    CUSTOM = "custom"


class CostTier(Enum):
    FREE = "free"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SafetyLevel(Enum):
    HIGH = "high"
    HIGHEST = "highest"


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and endpoint for one provider variant."""
    kind: ProviderKind
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class TargetConfig:
    """A processing target: one model on one provider."""
    target_id: str
    provider: ProviderKind
    model: str
    max_tokens: int
    cost_tier: CostTier
    estimated_latency_ms: int
    safety_level: SafetyLevel
    strengths: List[str] = field(default_factory=list)
    timeout_seconds: float = 30.0

    def __post_init__(self):
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be positive for {self.target_id}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive for {self.target_id}")


DEFAULT_TARGETS: Dict[str, TargetConfig] = {
    "groq-llama3-70b": TargetConfig(
        target_id="groq-llama3-70b",
        provider=ProviderKind.GROQ,
        model="llama3-70b-8192",
        max_tokens=8192,
        cost_tier=CostTier.MEDIUM,
        estimated_latency_ms=2000,
        safety_level=SafetyLevel.HIGH,
        strengths=["reasoning", "general"],
    ),
    "groq-mixtral-8x7b": TargetConfig(
        target_id="groq-mixtral-8x7b",
        provider=ProviderKind.GROQ,
        model="mixtral-8x7b-32768",
        max_tokens=32768,
        cost_tier=CostTier.MEDIUM,
        estimated_latency_ms=1500,
        safety_level=SafetyLevel.HIGH,
        strengths=["long-context", "multilingual"],
    ),
    "openai-gpt4": TargetConfig(
        target_id="openai-gpt4",
        provider=ProviderKind.OPENAI,
        model="gpt-4-1106-preview",
        max_tokens=4096,
        cost_tier=CostTier.HIGH,
        estimated_latency_ms=5000,
        safety_level=SafetyLevel.HIGHEST,
        strengths=["reasoning", "safety", "accuracy"],
        timeout_seconds=60.0,
    ),
    "educational-tuned": TargetConfig(
        target_id="educational-tuned",
        provider=ProviderKind.CUSTOM,
        model="llama3-education-lora",
        max_tokens=2048,
        cost_tier=CostTier.LOW,
        estimated_latency_ms=1000,
        safety_level=SafetyLevel.HIGH,
        strengths=["education", "tutoring"],
    ),
    "mental-health-specialized": TargetConfig(
        target_id="mental-health-specialized",
        provider=ProviderKind.CUSTOM,
        model="mental-health-safe-v2",
        max_tokens=2048,
        cost_tier=CostTier.MEDIUM,
        estimated_latency_ms=2500,
        safety_level=SafetyLevel.HIGHEST,
        strengths=["mental-health", "empathy", "crisis-detection"],
    ),
}
