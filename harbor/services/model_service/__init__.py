"""Model execution: provider variants behind one invocation interface.

Components:
- base_provider.py: ModelProvider ABC, OpenAI/Groq/HTTP endpoint variants
- executor.py: ModelExecutor.invoke(target_id, prompt, params)
- config.py: ProviderKind, ProviderConfig, TargetConfig, DEFAULT_TARGETS
"""

from .base_provider import (
    GroqProvider,
    HTTPEndpointProvider,
    ModelProvider,
    ModelResult,
    ModelServiceError,
    ModelUsage,
    OpenAIProvider,
    PROVIDER_CLASSES,
    TargetInvocationFailure,
    create_provider,
)
from .config import (
    CostTier,
    DEFAULT_TARGETS,
    ProviderConfig,
    ProviderKind,
    SafetyLevel,
    TargetConfig,
)
from .executor import ModelExecutor

__all__ = [
    "GroqProvider",
    "HTTPEndpointProvider",
    "ModelProvider",
    "ModelResult",
    "ModelServiceError",
    "ModelUsage",
    "OpenAIProvider",
    "PROVIDER_CLASSES",
    "TargetInvocationFailure",
    "create_provider",
    "CostTier",
    "DEFAULT_TARGETS",
    "ProviderConfig",
    "ProviderKind",
    "SafetyLevel",
    "TargetConfig",
    "ModelExecutor",
]
