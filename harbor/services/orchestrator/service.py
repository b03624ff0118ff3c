"""Orchestrator: gate, route, execute with fallbacks, post-process.

Request flow for ``process_query``:
1. Refine the caller's auth context from the feature lookup
2. Safety gate - blocked or escalated queries never reach a target
3. Semantic cache short-circuit
4. Rule-based routing decision
5. Execute primary target, then its fallback chain, within one deadline
6. Post-processing pipeline
7. Store the answer when the caller consented

Failure Handling:
    - Nothing escapes process_query; every failure becomes an envelope
    - Exhausted fallback chains are logged with every root cause
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from harbor.shared.models import (
    AuthContext,
    QueryContext,
    QueryPreferences,
)
from harbor.shared.utils import hash_pii, hash_text_for_audit
from harbor.services.event_bus import ObservabilityEvents
from harbor.services.model_service import (
    ModelExecutor,
    ModelResult,
    TargetInvocationFailure,
)
from harbor.services.safety_service import SafetyGate, SafetyVerdict
from .config import OrchestratorConfig
from .envelope import (
    CACHED_TARGET,
    EnvelopeMetadata,
    ResponseEnvelope,
    cached_envelope,
    error_envelope,
    safety_envelope,
)
from .interfaces import FeatureLookup, SemanticCache
from .pipeline import PostProcessor, build_system_prompt
from .routing import DEFAULT_RULES, RoutingDecision, RoutingRule, route
from .targets import TargetRegistry

logger = logging.getLogger(__name__)


class OrchestrationExhaustion(Exception):
    """The primary target and every fallback failed."""

    def __init__(self, request_id: str, failures: List[TargetInvocationFailure]):
        causes = "; ".join(str(f) for f in failures) or "no targets attempted"
        super().__init__(f"All targets failed for {request_id}: {causes}")
        self.request_id = request_id
        self.failures = failures


@dataclass(frozen=True)
class ExecutionOutcome:
    result: ModelResult
    target_id: str
    confidence: float
    hop: int


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class Orchestrator:
    """Routes each query to a processing target and assembles the response."""

    def __init__(
        self,
        gate: SafetyGate,
        executor: ModelExecutor,
        events: ObservabilityEvents,
        registry: Optional[TargetRegistry] = None,
        cache: Optional[SemanticCache] = None,
        features: Optional[FeatureLookup] = None,
        config: Optional[OrchestratorConfig] = None,
        rules: Sequence[RoutingRule] = DEFAULT_RULES,
    ):
        """Initialize orchestrator.

        Args:
            gate: Safety gate for queries and responses
            executor: Target invocation
            events: Observability event publisher
            registry: Target catalogue and fallback chains
            cache: Optional semantic cache
            features: Optional per-user feature lookup
            config: Routing, cache and fallback configuration
            rules: Routing rule table
        """
        self.gate = gate
        self.executor = executor
        self.events = events
        self.registry = registry if registry is not None else TargetRegistry(executor.targets)
        self.cache = cache
        self.features = features
        self.config = config if config is not None else OrchestratorConfig()
        self.rules = tuple(rules)
        self.postprocessor = PostProcessor(gate)

        logger.info(
            "ORCHESTRATOR_INITIALIZED",
            extra={
                "rule_count": len(self.rules),
                "target_count": len(self.registry.targets),
                "cache_enabled": cache is not None,
                "feature_lookup_enabled": features is not None,
            }
        )

    async def process_query(
        self,
        text: str,
        context: Optional[Dict[str, Any]],
        auth_context: AuthContext,
        preferences: Optional[QueryPreferences] = None,
        consent_to_train: bool = False,
        request_id: Optional[str] = None,
    ) -> ResponseEnvelope:
        """Process one query end to end.

        Args:
            text: Query text
            context: Free-form caller context
            auth_context: Authenticated caller
            preferences: Generation preferences and priority
            consent_to_train: Whether the answer may be stored for reuse
            request_id: Caller-supplied id (generated if omitted)

        Returns:
            ResponseEnvelope; never raises

        Logs:
            - ORCHESTRATOR_QUERY_RECEIVED: On entry
            - ORCHESTRATOR_TARGETS_EXHAUSTED: Primary and fallbacks failed
            - ORCHESTRATOR_REQUEST_FAILED: Any other uncaught error
        """
        request_id = request_id or generate_request_id()
        start_time = time.perf_counter()

        try:
            logger.info(
                "ORCHESTRATOR_QUERY_RECEIVED",
                extra={
                    "request_id": request_id,
                    "user_id_hash": hash_pii(auth_context.user_id),
                    "query_hash": hash_text_for_audit(text),
                    "query_length": len(text),
                }
            )
            return await self._process(
                text, context or {}, auth_context, preferences or QueryPreferences(),
                consent_to_train, request_id, start_time,
            )
        except OrchestrationExhaustion as e:
            logger.error(
                "ORCHESTRATOR_TARGETS_EXHAUSTED",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "root_causes": [
                        {
                            "target_id": f.target_id,
                            "reason": f.reason,
                            "cause_type": type(f.cause).__name__ if f.cause else None,
                        }
                        for f in e.failures
                    ],
                }
            )
        except Exception as e:
            logger.error(
                "ORCHESTRATOR_REQUEST_FAILED",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
        return error_envelope(request_id, self._elapsed_ms(start_time))

    async def _process(
        self,
        text: str,
        context: Dict[str, Any],
        auth_context: AuthContext,
        preferences: QueryPreferences,
        consent_to_train: bool,
        request_id: str,
        start_time: float,
    ) -> ResponseEnvelope:
        auth = await self._resolve_auth(auth_context, request_id)
        user_id_hash = hash_pii(auth.user_id)

        verdict = await self.gate.validate_query(text, auth)
        if not verdict.safe or verdict.escalate:
            return await self._safety_response(
                verdict, text, auth, user_id_hash, request_id, start_time
            )

        query_ctx = QueryContext(
            query=text,
            auth_context=auth,
            request_id=request_id,
            context=context,
            preferences=preferences,
            consent_to_train=consent_to_train,
        )

        cached = await self._find_cached(text, auth.user_id, request_id)
        if cached is not None and cached.confidence >= self.config.cache_threshold:
            envelope = cached_envelope(
                cached.response,
                cached.confidence,
                request_id,
                self._elapsed_ms(start_time),
                source_target=cached.source_target or CACHED_TARGET,
            )
            await self._complete(envelope, user_id_hash, auth.session_id)
            return envelope

        decision = route(query_ctx, self.registry, self.config, self.rules)
        logger.info(
            "ORCHESTRATOR_ROUTED",
            extra={
                "request_id": request_id,
                "target_id": decision.target_id,
                "rule": decision.rule,
                "confidence": decision.confidence,
            }
        )
        await self.events.decision_outcome(
            request_id=request_id,
            user_id_hash=user_id_hash,
            target_id=decision.target_id,
            rule=decision.rule,
            confidence=decision.confidence,
            pipeline_steps=decision.pipeline_steps,
            fallback_chain=decision.fallback_chain,
        )

        outcome = await self._execute(decision, query_ctx)
        content, steps = await self.postprocessor.run(
            outcome.result.content, decision.pipeline_steps, user_id=auth.user_id
        )

        if consent_to_train and auth.consent_flags.data_collection:
            await self._store_cached(text, content, auth.user_id, outcome, request_id)

        reasoning = list(decision.reasoning)
        if outcome.hop > 0:
            reasoning.append(
                f"Fallback target {outcome.target_id} used after {decision.target_id} failed"
            )

        envelope = ResponseEnvelope(
            text=content,
            target_id=outcome.target_id,
            confidence=outcome.confidence,
            reasoning=reasoning,
            metadata=EnvelopeMetadata(
                request_id=request_id,
                processing_time_ms=self._elapsed_ms(start_time),
                tokens_used=outcome.result.usage.total_tokens,
                cached=False,
                pipeline_steps=steps,
                safety_checks=decision.safety_checks,
                cost_tier=self.registry.get(outcome.target_id).cost_tier.value,
            ),
        )
        await self._complete(envelope, user_id_hash, auth.session_id)
        return envelope

    async def _resolve_auth(self, auth_context: AuthContext, request_id: str) -> AuthContext:
        """Refine risk level and consent from the feature lookup.

        Lookup failure falls back to the caller-supplied context.
        """
        if self.features is None:
            return auth_context
        try:
            features = await self.features.get_user_features(auth_context.user_id)
        except Exception as e:
            logger.warning(
                "FEATURE_LOOKUP_FAILED",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return auth_context
        if features is None:
            return auth_context
        return auth_context.with_features(features)

    async def _find_cached(self, text: str, user_id: str, request_id: str):
        if self.cache is None:
            return None
        try:
            return await self.cache.find_similar(text, user_id)
        except Exception as e:
            logger.warning(
                "SEMANTIC_CACHE_LOOKUP_FAILED",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return None

    async def _store_cached(
        self,
        text: str,
        content: str,
        user_id: str,
        outcome: ExecutionOutcome,
        request_id: str,
    ) -> None:
        """Store an answer for reuse; a cache failure never costs the answer."""
        if self.cache is None:
            return
        try:
            await self.cache.store(
                text, content, user_id, outcome.confidence, outcome.target_id
            )
        except Exception as e:
            logger.warning(
                "SEMANTIC_CACHE_STORE_FAILED",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )

    async def _safety_response(
        self,
        verdict: SafetyVerdict,
        text: str,
        auth: AuthContext,
        user_id_hash: str,
        request_id: str,
        start_time: float,
    ) -> ResponseEnvelope:
        if not verdict.safe:
            await self.events.safety_violation(
                user_id_hash=user_id_hash,
                violations=verdict.violations,
                severity=verdict.severity.value,
                action="blocked",
                content_hash=hash_text_for_audit(text),
                request_id=request_id,
                session_id=auth.session_id,
            )
        logger.info(
            "ORCHESTRATOR_SAFETY_SHORT_CIRCUIT",
            extra={
                "request_id": request_id,
                "safe": verdict.safe,
                "escalate": verdict.escalate,
                "violations": verdict.violations,
            }
        )
        envelope = safety_envelope(verdict, request_id, self._elapsed_ms(start_time))
        await self._complete(envelope, user_id_hash, auth.session_id)
        return envelope

    async def _execute(self, decision: RoutingDecision, ctx: QueryContext) -> ExecutionOutcome:
        """Try the primary target, then each fallback, within the query deadline.

        Raises:
            OrchestrationExhaustion: If every target failed
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.query_deadline_seconds
        chain = [decision.target_id, *decision.fallback_chain]
        failures: List[TargetInvocationFailure] = []

        params: Dict[str, Any] = {
            "system_prompt": build_system_prompt(decision.pipeline_steps),
            "temperature": ctx.preferences.temperature,
            "max_tokens": ctx.preferences.max_tokens,
        }

        for hop, target_id in enumerate(chain):
            remaining = deadline - loop.time()
            if remaining <= 0:
                failures.append(TargetInvocationFailure(target_id, "query deadline exceeded"))
                break

            attempt_start = time.perf_counter()
            try:
                result = await self.executor.invoke(
                    target_id, ctx.query, {**params, "timeout_seconds": remaining}
                )
            except TargetInvocationFailure as e:
                failures.append(e)
                await self.events.target_performance(
                    target_id=target_id,
                    latency_ms=self._elapsed_ms(attempt_start),
                    tokens_used=0,
                    success=False,
                    request_id=ctx.request_id,
                    error=e.reason,
                )
                logger.warning(
                    "TARGET_FAILED_TRYING_FALLBACK",
                    extra={
                        "request_id": ctx.request_id,
                        "target_id": target_id,
                        "hop": hop,
                        "reason": e.reason,
                        "remaining_targets": len(chain) - hop - 1,
                    }
                )
                continue

            await self.events.target_performance(
                target_id=target_id,
                latency_ms=result.latency_ms,
                tokens_used=result.usage.total_tokens,
                success=True,
                request_id=ctx.request_id,
            )
            return ExecutionOutcome(
                result=result,
                target_id=target_id,
                confidence=decision.confidence * (self.config.fallback_discount ** hop),
                hop=hop,
            )

        raise OrchestrationExhaustion(ctx.request_id, failures)

    async def _complete(
        self, envelope: ResponseEnvelope, user_id_hash: str, session_id: Optional[str]
    ) -> None:
        await self.events.request_completed(
            request_id=envelope.metadata.request_id,
            user_id_hash=user_id_hash,
            target_id=envelope.target_id,
            confidence=envelope.confidence,
            processing_time_ms=envelope.metadata.processing_time_ms,
            tokens_used=envelope.metadata.tokens_used,
            cached=envelope.metadata.cached,
            session_id=session_id,
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000
