"""Uniform response envelope.

Every path out of the orchestrator (model answer, cache hit, safety
block, error) produces the same shape.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from harbor.services.safety_service import DEFAULT_SAFETY_MESSAGE, SafetyVerdict

SAFETY_FILTER_TARGET = "safety-filter"
ERROR_HANDLER_TARGET = "error-handler"
CACHED_TARGET = "cached"

APOLOGY_MESSAGE = (
    "I'm experiencing some technical difficulties right now. "
    "Please try again in a moment, or feel free to ask me something else!"
)


@dataclass(frozen=True)
class EnvelopeMetadata:
    request_id: str
    processing_time_ms: float
    tokens_used: int
    cached: bool
    pipeline_steps: List[str] = field(default_factory=list)
    safety_checks: List[str] = field(default_factory=list)
    cost_tier: str = "free"


@dataclass(frozen=True)
class ResponseEnvelope:
    """What the caller receives for one query."""
    text: str
    target_id: str
    confidence: float
    metadata: EnvelopeMetadata
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "response": self.text,
            "target_id": self.target_id,
            "confidence": round(self.confidence, 3),
            "reasoning": self.reasoning,
            "metadata": {
                "request_id": self.metadata.request_id,
                "processing_time_ms": round(self.metadata.processing_time_ms, 2),
                "tokens_used": self.metadata.tokens_used,
                "cached": self.metadata.cached,
                "pipeline_steps": self.metadata.pipeline_steps,
                "safety_checks": self.metadata.safety_checks,
                "cost_tier": self.metadata.cost_tier,
            },
        }


def safety_envelope(
    verdict: SafetyVerdict, request_id: str, processing_time_ms: float
) -> ResponseEnvelope:
    return ResponseEnvelope(
        text=verdict.message or DEFAULT_SAFETY_MESSAGE,
        target_id=SAFETY_FILTER_TARGET,
        confidence=1.0,
        reasoning=["Safety filter activated"],
        metadata=EnvelopeMetadata(
            request_id=request_id,
            processing_time_ms=processing_time_ms,
            tokens_used=0,
            cached=False,
            pipeline_steps=["safety-filter"],
            safety_checks=["input-validation"],
        ),
    )


def cached_envelope(
    text: str,
    confidence: float,
    request_id: str,
    processing_time_ms: float,
    source_target: str = CACHED_TARGET,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        text=text,
        target_id=source_target,
        confidence=confidence,
        reasoning=["Similar query found in cache"],
        metadata=EnvelopeMetadata(
            request_id=request_id,
            processing_time_ms=processing_time_ms,
            tokens_used=0,
            cached=True,
            pipeline_steps=["cache-retrieval"],
        ),
    )


def error_envelope(request_id: str, processing_time_ms: float) -> ResponseEnvelope:
    return ResponseEnvelope(
        text=APOLOGY_MESSAGE,
        target_id=ERROR_HANDLER_TARGET,
        confidence=0.0,
        reasoning=["Error occurred during processing"],
        metadata=EnvelopeMetadata(
            request_id=request_id,
            processing_time_ms=processing_time_ms,
            tokens_used=0,
            cached=False,
            pipeline_steps=["error-handling"],
        ),
    )
