"""Safety Gate: query and response validation.

Every inbound query and every model response passes through here before
it reaches a user. Query validation runs in a fixed order:

1. Crisis scoring - emergency scores block immediately and escalate
2. Content moderation - high-confidence flags block
3. Prohibited instruction requests block
4. Non-emergency crisis - requires mental-health consent; with consent the
   query is allowed, escalated for review, and answered with resources
5. Otherwise safe

Failure Handling:
    - Any internal error fails CLOSED (unsafe verdict, never an exception)
    - Escalation notifications are best-effort and never change a verdict
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from harbor.shared.models import (
    AuthContext,
    CrisisType,
    RecommendedAction,
    Severity,
)
from harbor.shared.utils import (
    hash_pii,
    hash_pii_for_log,
    hash_text_for_audit,
    preview_for_log,
)
from .config import SafetyConfig
from .escalation import EscalationQueue
from .moderation import ContentModerator, ModerationResult, severity_for
from .responses import (
    COMMUNITY_GUIDELINES_MESSAGE,
    CONSENT_REQUIRED_MESSAGE,
    HARMFUL_RESPONSE_MESSAGE,
    MENTAL_HEALTH_RESPONSE_MESSAGE,
    PROHIBITED_CONTENT_MESSAGE,
    VALIDATION_ERROR_MESSAGE,
    crisis_response,
)
from .scanner import CrisisScanner

logger = logging.getLogger(__name__)

MENTAL_HEALTH_CONTEXT = "mental-health"


@dataclass(frozen=True)
class SafetyVerdict:
    """Structured classification of one query or response."""
    safe: bool
    confidence: float
    severity: Severity
    escalate: bool = False
    violations: List[str] = field(default_factory=list)
    message: Optional[str] = None
    blocked_terms: List[str] = field(default_factory=list)
    crisis_type: CrisisType = CrisisType.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "safe": self.safe,
            "confidence": self.confidence,
            "severity": self.severity.value,
            "escalate": self.escalate,
            "violations": self.violations,
            "blocked_terms": self.blocked_terms,
            "crisis_type": self.crisis_type.value,
        }


class SafetyGate:
    """Classifies queries and responses; owns the escalation queue."""

    def __init__(
        self,
        config: Optional[SafetyConfig] = None,
        scanner: Optional[CrisisScanner] = None,
        moderator: Optional[ContentModerator] = None,
        escalation_queue: Optional[EscalationQueue] = None,
        events=None,
    ):
        """Initialize the gate.

        Args:
            config: Safety configuration
            scanner: Crisis scanner (built from config if omitted)
            moderator: Content moderator
            escalation_queue: Human-review queue
            events: Optional ObservabilityEvents for crisis notifications
        """
        self.config = config if config is not None else SafetyConfig()
        self.scanner = scanner if scanner is not None else CrisisScanner(self.config)
        self.moderator = moderator if moderator is not None else ContentModerator()
        if escalation_queue is None:
            escalation_queue = EscalationQueue(capacity=self.config.escalation_capacity)
        self.escalation_queue = escalation_queue
        self.events = events

    async def validate_query(self, query: str, auth_context: AuthContext) -> SafetyVerdict:
        """Validate an inbound query.

        Args:
            query: Raw query text
            auth_context: Caller context (risk level, consent flags)

        Returns:
            SafetyVerdict; never raises

        Logs:
            - SAFETY_GATE_CRISIS_EMERGENCY: emergency crisis (critical level)
            - SAFETY_GATE_QUERY_BLOCKED: moderation/prohibited/consent block
            - SAFETY_GATE_VALIDATION_FAILED: internal error, failed closed
        """
        start_time = time.perf_counter()
        try:
            verdict = self._evaluate_query(query, auth_context)
        except Exception as e:
            logger.error(
                "SAFETY_GATE_VALIDATION_FAILED",
                extra={
                    "text_hash": hash_text_for_audit(query),
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return self._fail_closed(VALIDATION_ERROR_MESSAGE)

        if verdict.escalate:
            await self._escalate(query, auth_context, verdict)

        logger.info(
            "SAFETY_GATE_QUERY_VALIDATED",
            extra={
                "text_hash": hash_text_for_audit(query),
                "safe": verdict.safe,
                "escalate": verdict.escalate,
                "severity": verdict.severity.value,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            }
        )
        return verdict

    def _evaluate_query(self, query: str, auth_context: AuthContext) -> SafetyVerdict:
        crisis = self.scanner.score(query, auth_context.risk_level)

        if crisis.is_crisis and crisis.recommended_action == RecommendedAction.EMERGENCY:
            logger.critical(
                "SAFETY_GATE_CRISIS_EMERGENCY",
                extra={
                    "user_id_hash": hash_pii_for_log(auth_context.user_id),
                    "crisis_type": crisis.crisis_type.value,
                    "score": round(crisis.score, 3),
                    "keywords": crisis.keywords,
                }
            )
            return SafetyVerdict(
                safe=False,
                confidence=crisis.confidence,
                severity=Severity.CRITICAL,
                escalate=True,
                violations=["crisis-detected"],
                message=crisis_response(crisis.crisis_type),
                blocked_terms=list(crisis.keywords),
                crisis_type=crisis.crisis_type,
            )

        moderation = self.moderator.moderate(query)
        if moderation.flagged and moderation.confidence > self.config.moderation_block_confidence:
            self._log_blocked(auth_context, "moderation", moderation.categories)
            return SafetyVerdict(
                safe=False,
                confidence=moderation.confidence,
                severity=severity_for(moderation.categories),
                violations=list(moderation.categories),
                message=COMMUNITY_GUIDELINES_MESSAGE,
            )

        prohibited = self.moderator.find_prohibited_terms(query)
        if prohibited:
            self._log_blocked(auth_context, "prohibited-terms", prohibited)
            return SafetyVerdict(
                safe=False,
                confidence=1.0,
                severity=Severity.HIGH,
                violations=["prohibited-terms"],
                message=PROHIBITED_CONTENT_MESSAGE,
                blocked_terms=prohibited,
            )

        if crisis.is_crisis:
            if not auth_context.consent_flags.mental_health_features:
                self._log_blocked(auth_context, "consent-required", [crisis.crisis_type.value])
                return SafetyVerdict(
                    safe=False,
                    confidence=crisis.confidence,
                    severity=Severity.MEDIUM,
                    violations=["mental-health-consent-required"],
                    message=CONSENT_REQUIRED_MESSAGE,
                    crisis_type=crisis.crisis_type,
                )

            return SafetyVerdict(
                safe=True,
                confidence=0.8,
                severity=Severity.LOW,
                escalate=crisis.recommended_action == RecommendedAction.ESCALATE,
                message=crisis_response(crisis.crisis_type),
                crisis_type=crisis.crisis_type,
            )

        return SafetyVerdict(safe=True, confidence=1.0, severity=Severity.LOW)

    async def validate_response(
        self,
        response: str,
        context: str = "general",
        user_id: Optional[str] = None,
    ) -> SafetyVerdict:
        """Validate model output before it reaches a user.

        Args:
            response: Generated text
            context: Conversation context; "mental-health" enables the
                crisis-echo check
            user_id: Recipient, used to queue escalations for review

        Returns:
            SafetyVerdict; never raises
        """
        try:
            verdict = self._evaluate_response(response, context)
        except Exception as e:
            logger.error(
                "SAFETY_GATE_RESPONSE_VALIDATION_FAILED",
                extra={
                    "text_hash": hash_text_for_audit(response),
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return self._fail_closed(None)

        if not verdict.safe:
            logger.warning(
                "SAFETY_GATE_RESPONSE_FLAGGED",
                extra={
                    "context": context,
                    "violations": verdict.violations,
                    "severity": verdict.severity.value,
                    "text_hash": hash_text_for_audit(response),
                }
            )
        if verdict.escalate and user_id is not None:
            self.escalation_queue.add(
                user_id=user_id,
                crisis_type=verdict.crisis_type.value,
                severity=verdict.severity.value,
                confidence=verdict.confidence,
                query_preview=preview_for_log(response, self.config.preview_length),
            )
        return verdict

    def _evaluate_response(self, response: str, context: str) -> SafetyVerdict:
        if self.moderator.has_harmful_advice(response):
            return SafetyVerdict(
                safe=False,
                confidence=0.9,
                severity=Severity.HIGH,
                escalate=True,
                violations=["harmful-advice"],
                message=HARMFUL_RESPONSE_MESSAGE,
            )

        if context == MENTAL_HEALTH_CONTEXT and self.moderator.echoes_crisis_language(response):
            return SafetyVerdict(
                safe=False,
                confidence=1.0,
                severity=Severity.HIGH,
                violations=["inappropriate-mental-health-response"],
                message=MENTAL_HEALTH_RESPONSE_MESSAGE,
            )

        moderation = self.moderator.moderate(response)
        if moderation.flagged:
            return SafetyVerdict(
                safe=moderation.confidence < 0.5,
                confidence=moderation.confidence,
                severity=severity_for(moderation.categories),
                escalate=moderation.confidence > 0.9,
                violations=list(moderation.categories),
            )

        return SafetyVerdict(safe=True, confidence=1.0, severity=Severity.LOW)

    def moderate_output(self, content: str) -> ModerationResult:
        """Mask profanity and redact PII in model output."""
        return self.moderator.moderate_output(content)

    async def _escalate(
        self, query: str, auth_context: AuthContext, verdict: SafetyVerdict
    ) -> None:
        """Queue for review and notify; never changes the verdict."""
        preview = preview_for_log(query, self.config.preview_length)
        try:
            self.escalation_queue.add(
                user_id=auth_context.user_id,
                crisis_type=verdict.crisis_type.value,
                severity=verdict.severity.value,
                confidence=verdict.confidence,
                query_preview=preview,
            )
        except Exception as e:
            logger.critical(
                "SAFETY_GATE_ESCALATION_FAILED",
                extra={
                    "crisis_type": verdict.crisis_type.value,
                    "severity": verdict.severity.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )

        if self.events is None:
            return
        try:
            await self.events.crisis_detected(
                user_id_hash=hash_pii(auth_context.user_id),
                crisis_type=verdict.crisis_type.value,
                severity=verdict.severity.value,
                confidence=verdict.confidence,
                recommended_action=(
                    RecommendedAction.EMERGENCY.value if not verdict.safe
                    else RecommendedAction.ESCALATE.value
                ),
                query_preview=preview,
                session_id=auth_context.session_id,
            )
        except Exception as e:
            logger.error(
                "SAFETY_GATE_CRISIS_NOTIFICATION_FAILED",
                extra={
                    "user_id_hash": hash_pii_for_log(auth_context.user_id),
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )

    def _log_blocked(self, auth_context: AuthContext, reason: str, details: List[str]) -> None:
        logger.warning(
            "SAFETY_GATE_QUERY_BLOCKED",
            extra={
                "user_id_hash": hash_pii_for_log(auth_context.user_id),
                "reason": reason,
                "details": details,
            }
        )

    @staticmethod
    def _fail_closed(message: Optional[str]) -> SafetyVerdict:
        return SafetyVerdict(
            safe=False,
            confidence=0.5,
            severity=Severity.MEDIUM,
            violations=["validation-error"],
            message=message,
        )
