"""Tests for the composition root."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from harbor.app import DEV_PII_SALT, HarborSettings, build_core
from harbor.shared.models import AuthContext
from harbor.services.event_bus import EventTypes
from harbor.services.model_service import (
    HTTPEndpointProvider,
    ModelResult,
    ModelUsage,
    ProviderKind,
)


def make_provider(content="Photosynthesis turns light into sugar."):
    provider = MagicMock()
    provider.generate = AsyncMock(
        return_value=ModelResult(
            content=content,
            model="m",
            provider="test",
            usage=ModelUsage(prompt_tokens=5, completion_tokens=5),
        )
    )
    return provider


class TestHarborSettings:
    """Tests for environment parsing."""

    def test_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            settings = HarborSettings.from_env()

        assert settings.pii_salt == DEV_PII_SALT
        assert settings.cache_threshold == 0.95
        assert settings.stream_enabled is False
        assert settings.provider_configs() == {}

    def test_overrides(self):
        env = {
            "HARBOR_CACHE_THRESHOLD": "0.9",
            "HARBOR_FALLBACK_DISCOUNT": "0.5",
            "HARBOR_CRISIS_THRESHOLDS": "5,8,12",
            "EVENT_STREAM_ENABLED": "TRUE",
            "GROQ_API_KEY": "gsk_test",
            "CUSTOM_MODEL_ENDPOINT": "http://tgi.internal:8080/generate",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = HarborSettings.from_env()

        assert settings.cache_threshold == 0.9
        assert settings.fallback_discount == 0.5
        assert settings.crisis_thresholds == "5,8,12"
        assert settings.stream_enabled is True
        configs = settings.provider_configs()
        assert set(configs) == {ProviderKind.GROQ, ProviderKind.CUSTOM}
        assert configs[ProviderKind.CUSTOM].base_url == "http://tgi.internal:8080/generate"


class TestBuildCore:
    """Tests for wiring."""

    def test_config_flows_to_components(self):
        settings = HarborSettings(
            crisis_thresholds="5,8,12",
            risk_multiplier=2.0,
            cache_threshold=0.9,
            history_size=50,
        )

        core = build_core(settings, providers={})

        assert core.gate.config.thresholds.imminent == 12
        assert core.gate.config.high_risk_multiplier == 2.0
        assert core.orchestrator.config.cache_threshold == 0.9
        assert core.bus.config.max_history_size == 50

    def test_providers_built_from_settings(self):
        settings = HarborSettings(custom_endpoint="http://tgi.internal:8080/generate")

        core = build_core(settings)

        assert isinstance(core.executor.providers[ProviderKind.CUSTOM], HTTPEndpointProvider)
        assert core.executor.is_available("educational-tuned")
        assert not core.executor.is_available("openai-gpt4")

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            build_core(HarborSettings(crisis_thresholds="10,5"), providers={})


@pytest.mark.asyncio
class TestHarborCore:
    """End to end through the assembled core."""

    async def test_process_query(self):
        providers = {ProviderKind.CUSTOM: make_provider()}
        core = build_core(HarborSettings(), providers=providers)

        envelope = await core.process_query(
            "Can you help me understand photosynthesis for my biology homework?",
            AuthContext(user_id="student_1"),
        )

        assert envelope.target_id == "educational-tuned"
        assert envelope.confidence == pytest.approx(0.9)
        assert len(core.bus.get_history(topic=EventTypes.REQUEST_COMPLETED)) == 1
        await core.shutdown()

    async def test_no_providers_returns_apology(self):
        core = build_core(HarborSettings(), providers={})

        envelope = await core.process_query(
            "What is the capital of France?", AuthContext(user_id="student_1")
        )

        assert envelope.target_id == "error-handler"
        assert envelope.confidence == 0.0
        await core.shutdown()

    async def test_crisis_notification_reaches_bus(self):
        core = build_core(HarborSettings(), providers={})

        envelope = await core.process_query(
            "I want to end my life", AuthContext(user_id="student_1")
        )

        assert envelope.target_id == "safety-filter"
        assert len(core.bus.get_history(topic=EventTypes.SAFETY_CRISIS_DETECTED)) == 1
        await core.shutdown()
