"""Orchestrator: the request path from query to response envelope.

Components:
- service.py: Orchestrator.process_query (gate, cache, route, execute, post-process)
- routing.py: Rule table and pure routing functions
- targets.py: TargetRegistry (targets, fallback chains, safety checks)
- pipeline.py: System prompts and post-processing steps
- envelope.py: ResponseEnvelope and its safety/cache/error variants
- interfaces.py: SemanticCache and FeatureLookup protocols with in-memory backends
"""

from .config import OrchestratorConfig, RoutingAction
from .envelope import (
    CACHED_TARGET,
    ERROR_HANDLER_TARGET,
    SAFETY_FILTER_TARGET,
    EnvelopeMetadata,
    ResponseEnvelope,
)
from .interfaces import (
    CachedResponse,
    FeatureLookup,
    InMemoryFeatureStore,
    InMemorySemanticCache,
    SemanticCache,
)
from .pipeline import PostProcessor, build_system_prompt
from .routing import (
    DEFAULT_RULES,
    RoutingDecision,
    RoutingRule,
    build_pipeline,
    matching_rules,
    route,
    select_rule,
)
from .service import OrchestrationExhaustion, Orchestrator
from .targets import TargetRegistry

__all__ = [
    "OrchestratorConfig",
    "RoutingAction",
    "CACHED_TARGET",
    "ERROR_HANDLER_TARGET",
    "SAFETY_FILTER_TARGET",
    "EnvelopeMetadata",
    "ResponseEnvelope",
    "CachedResponse",
    "FeatureLookup",
    "InMemoryFeatureStore",
    "InMemorySemanticCache",
    "SemanticCache",
    "PostProcessor",
    "build_system_prompt",
    "DEFAULT_RULES",
    "RoutingDecision",
    "RoutingRule",
    "build_pipeline",
    "matching_rules",
    "route",
    "select_rule",
    "OrchestrationExhaustion",
    "Orchestrator",
    "TargetRegistry",
]
