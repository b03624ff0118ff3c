"""Model executor: one entry point for invoking any processing target.

Looks up the target, resolves its provider, clamps generation limits and
enforces the target's timeout. Every failure surfaces as
``TargetInvocationFailure`` so the orchestrator can fall back uniformly.
"""
import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from .base_provider import ModelProvider, ModelResult, TargetInvocationFailure
from .config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TARGETS,
    ProviderKind,
    TargetConfig,
)

logger = logging.getLogger(__name__)


class ModelExecutor:
    """Invokes processing targets through their configured providers."""

    def __init__(
        self,
        providers: Mapping[ProviderKind, ModelProvider],
        targets: Optional[Mapping[str, TargetConfig]] = None,
    ):
        """Initialize executor.

        Args:
            providers: Configured provider per kind; kinds without an
                entry make their targets unavailable
            targets: Target catalogue (defaults to DEFAULT_TARGETS)
        """
        self.providers: Dict[ProviderKind, ModelProvider] = dict(providers)
        self.targets: Dict[str, TargetConfig] = dict(
            DEFAULT_TARGETS if targets is None else targets
        )

        logger.info(
            "MODEL_EXECUTOR_INITIALIZED",
            extra={
                "providers": sorted(kind.value for kind in self.providers),
                "target_count": len(self.targets),
            }
        )

    def is_available(self, target_id: str) -> bool:
        target = self.targets.get(target_id)
        return target is not None and target.provider in self.providers

    async def invoke(
        self,
        target_id: str,
        prompt: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ModelResult:
        """Invoke a target.

        Args:
            target_id: Processing target id
            prompt: User prompt
            params: Optional ``system_prompt``, ``temperature``,
                ``max_tokens`` and ``timeout_seconds`` (an upper bound
                below the target's own timeout, e.g. a request deadline)

        Returns:
            ModelResult tagged with the target id

        Raises:
            TargetInvocationFailure: On any provider error, timeout or
                empty content
        """
        params = params or {}
        target = self.targets.get(target_id)
        if target is None:
            raise TargetInvocationFailure(target_id, "unknown target")

        provider = self.providers.get(target.provider)
        if provider is None:
            raise TargetInvocationFailure(
                target_id, f"provider {target.provider.value} not configured"
            )

        requested_tokens = params.get("max_tokens") or DEFAULT_MAX_TOKENS
        max_tokens = min(requested_tokens, target.max_tokens)
        temperature = params.get("temperature")
        if temperature is None:
            temperature = DEFAULT_TEMPERATURE

        timeout = target.timeout_seconds
        if params.get("timeout_seconds") is not None:
            timeout = min(timeout, params["timeout_seconds"])
        if timeout <= 0:
            raise TargetInvocationFailure(target_id, "deadline exceeded before invocation")

        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                provider.generate(
                    model=target.model,
                    prompt=prompt,
                    system_prompt=params.get("system_prompt"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "MODEL_INVOCATION_TIMEOUT",
                extra={"target_id": target_id, "timeout_seconds": timeout}
            )
            raise TargetInvocationFailure(target_id, f"timed out after {timeout}s", e) from e
        except Exception as e:
            logger.warning(
                "MODEL_INVOCATION_FAILED",
                extra={
                    "target_id": target_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise TargetInvocationFailure(target_id, str(e) or type(e).__name__, e) from e

        if not result.content or not result.content.strip():
            logger.warning("MODEL_INVOCATION_EMPTY", extra={"target_id": target_id})
            raise TargetInvocationFailure(target_id, "empty content")

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "MODEL_INVOCATION_SUCCEEDED",
            extra={
                "target_id": target_id,
                "model": target.model,
                "latency_ms": round(latency_ms, 2),
                "tokens_used": result.usage.total_tokens,
            }
        )
        return replace(result, target_id=target_id, latency_ms=latency_ms)
