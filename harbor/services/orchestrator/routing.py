"""Rule-based routing.

The rule table is data; evaluation is done by pure functions so routing
can be tested without an orchestrator. The highest-priority matching rule
wins (ties keep table order). When no rule matches, a length/complexity
heuristic picks between the balanced default and the long-context target.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from harbor.shared.models import QueryContext, QueryPriority, RiskLevel
from .config import (
    BASE_PIPELINE,
    COMPLEX_QUERY_CHARS,
    COMPLEX_REASONING_KEYWORDS,
    COMPLEX_TERM_PATTERN,
    DEFAULT_TARGET,
    EDUCATIONAL_KEYWORDS,
    LONG_CONTEXT_TARGET,
    MENTAL_HEALTH_KEYWORDS,
    OrchestratorConfig,
    RoutingAction,
)
from .targets import TargetRegistry

_COMPLEX_TERMS = re.compile(COMPLEX_TERM_PATTERN)


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def is_mental_health_query(ctx: QueryContext) -> bool:
    return _contains_any(ctx.query, MENTAL_HEALTH_KEYWORDS)


def is_educational_query(ctx: QueryContext) -> bool:
    return _contains_any(ctx.query, EDUCATIONAL_KEYWORDS)


def is_complex_reasoning_query(ctx: QueryContext) -> bool:
    return (
        _contains_any(ctx.query, COMPLEX_REASONING_KEYWORDS)
        or len(ctx.query) > COMPLEX_QUERY_CHARS
    )


def is_critical_priority(ctx: QueryContext) -> bool:
    return ctx.preferences.priority == QueryPriority.CRITICAL


def is_high_risk_caller(ctx: QueryContext) -> bool:
    return ctx.auth_context.risk_level == RiskLevel.HIGH


def count_complex_terms(text: str) -> int:
    return len(_COMPLEX_TERMS.findall(text))


@dataclass(frozen=True)
class RoutingRule:
    """One entry in the routing table."""
    name: str
    predicate: Callable[[QueryContext], bool]
    action: str
    priority: int
    rationale: str


DEFAULT_RULES: Tuple[RoutingRule, ...] = (
    RoutingRule(
        name="mental-health",
        predicate=is_mental_health_query,
        action=RoutingAction.MENTAL_HEALTH,
        priority=10,
        rationale="Mental health query detected",
    ),
    RoutingRule(
        name="educational",
        predicate=is_educational_query,
        action=RoutingAction.EDUCATIONAL,
        priority=8,
        rationale="Educational content query",
    ),
    RoutingRule(
        name="complex-reasoning",
        predicate=is_complex_reasoning_query,
        action=RoutingAction.LARGE_REASONING,
        priority=7,
        rationale="Complex reasoning required",
    ),
    RoutingRule(
        name="critical-priority",
        predicate=is_critical_priority,
        action=RoutingAction.FASTEST,
        priority=9,
        rationale="Critical priority request",
    ),
    RoutingRule(
        name="high-risk-caller",
        predicate=is_high_risk_caller,
        action=RoutingAction.SAFETY_FIRST,
        priority=10,
        rationale="High risk user requires safety-first approach",
    ),
)


def matching_rules(rules: Sequence[RoutingRule], ctx: QueryContext) -> List[RoutingRule]:
    """Rules whose predicate holds, highest priority first (stable)."""
    matched = [rule for rule in rules if rule.predicate(ctx)]
    return sorted(matched, key=lambda rule: rule.priority, reverse=True)


def select_rule(rules: Sequence[RoutingRule], ctx: QueryContext) -> Optional[RoutingRule]:
    matched = matching_rules(rules, ctx)
    return matched[0] if matched else None


def build_pipeline(action: str) -> List[str]:
    base = list(BASE_PIPELINE)
    if action == RoutingAction.MENTAL_HEALTH:
        return ["crisis-detection", "empathy-enhancement", *base, "mental-health-safety"]
    if action == RoutingAction.EDUCATIONAL:
        return ["educational-context", *base, "pedagogical-enhancement"]
    if action == RoutingAction.SAFETY_FIRST:
        return ["enhanced-safety-check", *base, "output-moderation"]
    return base


@dataclass(frozen=True)
class RoutingDecision:
    """Selected target and pipeline for one query."""
    target_id: str
    action: str
    pipeline_steps: List[str]
    confidence: float
    fallback_chain: List[str]
    safety_checks: List[str]
    cost_tier: str
    estimated_latency_ms: int
    reasoning: List[str] = field(default_factory=list)
    rule: Optional[str] = None


def route(
    ctx: QueryContext,
    registry: TargetRegistry,
    config: Optional[OrchestratorConfig] = None,
    rules: Sequence[RoutingRule] = DEFAULT_RULES,
) -> RoutingDecision:
    """Produce the routing decision for one query."""
    config = config or OrchestratorConfig()
    rule = select_rule(rules, ctx)

    if rule is not None:
        action = rule.action
        target_id = registry.target_for_action(action)
        confidence = config.rule_confidence
        reasoning = [rule.rationale]
    else:
        action = RoutingAction.DEFAULT
        confidence = config.heuristic_confidence
        if (
            len(ctx.query) > config.long_context_chars
            or count_complex_terms(ctx.query) > config.complex_term_limit
        ):
            target_id = LONG_CONTEXT_TARGET
            reasoning = ["Long or complex query detected"]
        else:
            target_id = DEFAULT_TARGET
            reasoning = ["Balanced default routing"]

    target = registry.get(target_id)
    return RoutingDecision(
        target_id=target_id,
        action=action,
        pipeline_steps=build_pipeline(action),
        confidence=confidence,
        fallback_chain=registry.fallback_chain(target_id),
        safety_checks=registry.safety_checks(target_id),
        cost_tier=target.cost_tier.value,
        estimated_latency_ms=target.estimated_latency_ms,
        reasoning=reasoning,
        rule=rule.name if rule else None,
    )
