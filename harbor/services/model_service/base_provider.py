"""Provider interface and implementations.

Provides an abstract base class and concrete implementations for the
supported provider variants (OpenAI, Groq, custom HTTP endpoints). The
variant for a configuration is resolved through a fixed lookup table.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

import aiohttp
import openai

from .config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    GROQ_BASE_URL,
    ProviderConfig,
    ProviderKind,
)

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 10000


class ModelServiceError(Exception):
    """Base error for model execution."""


class TargetInvocationFailure(ModelServiceError):
    """A processing target failed to produce content.

    Raised for provider errors, timeouts and empty responses alike; the
    orchestrator treats it as the signal to try the next fallback.
    """

    def __init__(self, target_id: str, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"{target_id}: {reason}")
        self.target_id = target_id
        self.reason = reason
        self.cause = cause


@dataclass(frozen=True)
class ModelUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class ModelResult:
    """Generated content from one provider call."""
    content: str
    model: str
    provider: str
    usage: ModelUsage = field(default_factory=ModelUsage)
    latency_ms: float = 0.0
    target_id: Optional[str] = None


class ModelProvider(ABC):
    """Abstract base class for provider implementations."""

    kind: ProviderKind

    def __init__(self, config: ProviderConfig):
        """Initialize provider with configuration.

        Args:
            config: Provider credentials and endpoint
        """
        self.config = config
        logger.info(
            "MODEL_PROVIDER_INITIALIZED",
            extra={"provider": config.kind.value}
        )

    @abstractmethod
    async def generate(
        self,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResult:
        """Generate a completion.

        Args:
            model: Provider-side model name
            prompt: User prompt
            system_prompt: Optional system prompt for context
            temperature: Sampling temperature
            max_tokens: Completion token limit

        Returns:
            ModelResult

        Raises:
            ValueError: If prompt is invalid
        """

    def validate_prompt(self, prompt: str) -> bool:
        """Validate prompt before sending to the provider."""
        if not prompt or not prompt.strip():
            logger.warning("MODEL_PROMPT_EMPTY")
            return False

        if len(prompt) > MAX_PROMPT_LENGTH:
            logger.warning(
                "MODEL_PROMPT_TOO_LONG",
                extra={"length": len(prompt), "max_length": MAX_PROMPT_LENGTH}
            )
            return False

        return True


class OpenAIProvider(ModelProvider):
    """OpenAI chat completions API."""

    kind = ProviderKind.OPENAI

    def __init__(self, config: ProviderConfig, client: Any = None):
        """Initialize OpenAI provider.

        Args:
            config: Provider configuration with API key
            client: Pre-built AsyncOpenAI-compatible client
        """
        super().__init__(config)

        if client is None:
            if not config.api_key:
                raise ValueError(f"{self.kind.value} API key required")
            client = openai.AsyncOpenAI(
                api_key=config.api_key,
                base_url=self._base_url(),
                timeout=config.timeout_seconds,
            )
        self.client = client

    def _base_url(self) -> Optional[str]:
        return self.config.base_url

    async def generate(
        self,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResult:
        if not self.validate_prompt(prompt):
            raise ValueError("Invalid prompt")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        start_time = time.perf_counter()
        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        usage = ModelUsage()
        if response.usage is not None:
            usage = ModelUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
            )

        return ModelResult(
            content=response.choices[0].message.content or "",
            model=model,
            provider=self.kind.value,
            usage=usage,
            latency_ms=latency_ms,
        )


class GroqProvider(OpenAIProvider):
    """Groq through its OpenAI-compatible endpoint."""

    kind = ProviderKind.GROQ

    def _base_url(self) -> Optional[str]:
        return self.config.base_url or GROQ_BASE_URL


class HTTPEndpointProvider(ModelProvider):
    """Self-hosted text-generation-inference endpoint.

    Fine-tuned variants are served as LoRA adapters on one endpoint; the
    target's model name is sent as the adapter id.
    """

    kind = ProviderKind.CUSTOM

    def __init__(self, config: ProviderConfig):
        super().__init__(config)

        if not config.base_url:
            raise ValueError("Custom model endpoint required")

        self.endpoint = config.base_url
        self.headers: Dict[str, str] = {}
        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"

    async def generate(
        self,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResult:
        if not self.validate_prompt(prompt):
            raise ValueError("Invalid prompt")

        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        payload = {
            "inputs": full_prompt,
            "parameters": {
                "adapter_id": model,
                "max_new_tokens": max_tokens,
                "temperature": temperature,
                "return_full_text": False,
                "details": True,
            },
        }

        start_time = time.perf_counter()
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            ) as response:
                response.raise_for_status()
                result = await response.json()
        latency_ms = (time.perf_counter() - start_time) * 1000

        if isinstance(result, list):
            result = result[0] if result else {}

        details = result.get("details") or {}
        return ModelResult(
            content=result.get("generated_text", ""),
            model=model,
            provider=self.kind.value,
            usage=ModelUsage(completion_tokens=details.get("generated_tokens", 0)),
            latency_ms=latency_ms,
        )


PROVIDER_CLASSES: Dict[ProviderKind, Type[ModelProvider]] = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.GROQ: GroqProvider,
    ProviderKind.CUSTOM: HTTPEndpointProvider,
}


def create_provider(config: ProviderConfig) -> ModelProvider:
    """Factory function to create a provider instance.

    Args:
        config: Provider configuration

    Returns:
        ModelProvider instance

    Raises:
        ValueError: If the provider kind is unsupported or misconfigured
    """
    provider_class = PROVIDER_CLASSES.get(config.kind)
    if provider_class is None:
        raise ValueError(f"Unsupported provider: {config.kind}")
    return provider_class(config)
