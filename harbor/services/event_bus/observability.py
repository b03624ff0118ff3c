"""Fixed-shape observability events.

Components publish through these helpers instead of calling the bus with
ad hoc payloads, so each event type always carries the same fields.
Delivery is best-effort: events are dispatched in the background and are
only as durable as the bus history (or the external stream when the
event is persistent).
"""
import logging
from typing import List, Optional

from .bus import EventBus
from .events import Event, EventTypes

logger = logging.getLogger(__name__)


class ObservabilityEvents:
    """Publishes the named events other components and sinks rely on."""

    def __init__(self, bus: EventBus):
        self.bus = bus

    async def request_completed(
        self,
        request_id: str,
        user_id_hash: str,
        target_id: str,
        confidence: float,
        processing_time_ms: float,
        tokens_used: int,
        cached: bool,
        session_id: Optional[str] = None,
    ) -> Optional[Event]:
        return await self.bus.publish(
            EventTypes.REQUEST_COMPLETED,
            {
                "request_id": request_id,
                "user_id_hash": user_id_hash,
                "target_id": target_id,
                "confidence": confidence,
                "processing_time_ms": processing_time_ms,
                "tokens_used": tokens_used,
                "cached": cached,
            },
            source="orchestrator",
            correlation_id=request_id,
            user_id=user_id_hash,
            session_id=session_id,
            persistent=True,
            wait=False,
        )

    async def safety_violation(
        self,
        user_id_hash: str,
        violations: List[str],
        severity: str,
        action: str,
        content_hash: str,
        request_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[Event]:
        return await self.bus.publish(
            EventTypes.SAFETY_VIOLATION_DETECTED,
            {
                "user_id_hash": user_id_hash,
                "violation_types": violations,
                "severity": severity,
                "action": action,
                "content_hash": content_hash,
            },
            source="safety-gate",
            correlation_id=request_id,
            user_id=user_id_hash,
            session_id=session_id,
            persistent=True,
            wait=False,
        )

    async def crisis_detected(
        self,
        user_id_hash: str,
        crisis_type: str,
        severity: str,
        confidence: float,
        recommended_action: str,
        query_preview: str,
        session_id: Optional[str] = None,
    ) -> Optional[Event]:
        """Side-channel notification for the human-review queue."""
        return await self.bus.publish(
            EventTypes.SAFETY_CRISIS_DETECTED,
            {
                "user_id_hash": user_id_hash,
                "crisis_type": crisis_type,
                "severity": severity,
                "confidence": confidence,
                "recommended_action": recommended_action,
                "query_preview": query_preview,
                "requires_human_intervention": True,
            },
            source="safety-gate",
            user_id=user_id_hash,
            session_id=session_id,
            persistent=True,
            wait=False,
        )

    async def target_performance(
        self,
        target_id: str,
        latency_ms: float,
        tokens_used: int,
        success: bool,
        request_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[Event]:
        return await self.bus.publish(
            EventTypes.TARGET_PERFORMANCE,
            {
                "target_id": target_id,
                "latency_ms": latency_ms,
                "tokens_used": tokens_used,
                "success": success,
                "error": error,
            },
            source="model-executor",
            correlation_id=request_id,
            wait=False,
        )

    async def decision_outcome(
        self,
        request_id: str,
        user_id_hash: str,
        target_id: str,
        rule: Optional[str],
        confidence: float,
        pipeline_steps: List[str],
        fallback_chain: List[str],
    ) -> Optional[Event]:
        return await self.bus.publish(
            EventTypes.DECISION_OUTCOME,
            {
                "request_id": request_id,
                "target_id": target_id,
                "rule": rule,
                "confidence": confidence,
                "pipeline_steps": pipeline_steps,
                "fallback_chain": fallback_chain,
            },
            source="orchestrator",
            correlation_id=request_id,
            user_id=user_id_hash,
            wait=False,
        )
