"""Orchestrator configuration, routing tables and fallback chains."""
from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class OrchestratorConfig:
    """Configuration for routing, caching and fallback execution."""

    # Cached answers at or above this similarity short-circuit routing
    cache_threshold: float = 0.95

    # Confidence multiplier applied per fallback hop
    fallback_discount: float = 0.8

    # Wall-clock budget for every target attempt of one query
    query_deadline_seconds: float = 60.0

    rule_confidence: float = 0.9
    heuristic_confidence: float = 0.7

    # Heuristic routing: long-context target above these limits
    long_context_chars: int = 2000
    complex_term_limit: int = 2

    def __post_init__(self):
        if not 0.0 <= self.cache_threshold <= 1.0:
            raise ValueError("cache_threshold must be between 0 and 1")
        if not 0.0 < self.fallback_discount <= 1.0:
            raise ValueError("fallback_discount must be in (0, 1]")
        if self.query_deadline_seconds <= 0:
            raise ValueError("query_deadline_seconds must be positive")


class RoutingAction:
    """Actions a routing rule can select."""
    MENTAL_HEALTH = "mental-health-specialized"
    EDUCATIONAL = "educational-specialized"
    LARGE_REASONING = "large-reasoning-model"
    FASTEST = "fastest-model"
    SAFETY_FIRST = "safety-first-model"
    DEFAULT = "default"


ACTION_TARGETS: Dict[str, str] = {
    RoutingAction.MENTAL_HEALTH: "mental-health-specialized",
    RoutingAction.EDUCATIONAL: "educational-tuned",
    RoutingAction.LARGE_REASONING: "openai-gpt4",
    RoutingAction.FASTEST: "groq-mixtral-8x7b",
    RoutingAction.SAFETY_FIRST: "openai-gpt4",
    RoutingAction.DEFAULT: "groq-llama3-70b",
}

DEFAULT_TARGET = "groq-llama3-70b"
LONG_CONTEXT_TARGET = "groq-mixtral-8x7b"

FALLBACK_CHAINS: Dict[str, List[str]] = {
    "openai-gpt4": ["groq-llama3-70b", "groq-mixtral-8x7b"],
    "groq-llama3-70b": ["groq-mixtral-8x7b", "educational-tuned"],
    "mental-health-specialized": ["openai-gpt4", "groq-llama3-70b"],
    "educational-tuned": ["groq-llama3-70b", "groq-mixtral-8x7b"],
}
DEFAULT_FALLBACK_CHAIN: List[str] = ["groq-llama3-70b"]

BASE_PIPELINE: Tuple[str, ...] = ("preprocessing", "model-call", "postprocessing")

# Query classification keywords, matched as case-insensitive substrings
MENTAL_HEALTH_KEYWORDS: Tuple[str, ...] = (
    "depressed", "anxiety", "anxious", "suicide", "suicidal", "self-harm",
    "cutting", "worthless", "hopeless", "therapy", "counseling", "mental health",
    "panic", "stress", "overwhelmed", "lonely", "isolated", "hurt myself",
    "end it all", "can't go on", "no point", "better off dead",
)

EDUCATIONAL_KEYWORDS: Tuple[str, ...] = (
    "homework", "assignment", "study", "exam", "test", "quiz", "lesson",
    "explain", "learn", "understand", "teach", "tutor", "grade", "school",
    "university", "college", "course", "subject", "chapter", "textbook",
)

COMPLEX_REASONING_KEYWORDS: Tuple[str, ...] = (
    "analyze", "compare", "contrast", "evaluate", "synthesize", "complex",
    "multi-step", "reasoning", "logic", "proof", "derivation", "calculation",
    "solve", "problem", "algorithm", "optimization", "decision",
)

# Queries longer than this count as complex reasoning
COMPLEX_QUERY_CHARS = 500

# Technical or academic vocabulary
COMPLEX_TERM_PATTERN = r"\b[A-Z][a-z]{8,}\b|\b\w{12,}\b"
