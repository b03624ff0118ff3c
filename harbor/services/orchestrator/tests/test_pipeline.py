"""Tests for system prompts and post-processing steps."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from harbor.shared.utils import configure_pii_salt
from harbor.services.orchestrator import PostProcessor, build_pipeline, build_system_prompt
from harbor.services.orchestrator.config import RoutingAction
from harbor.services.orchestrator.pipeline import STUDY_TIP, SYSTEM_PROMPTS
from harbor.services.safety_service import SAFE_ALTERNATIVE_RESPONSE, SafetyGate


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def processor():
    return PostProcessor(SafetyGate())


class TestBuildSystemPrompt:
    """Tests for pre-processing prompts."""

    def test_default_pipeline_has_no_prompt(self):
        assert build_system_prompt(build_pipeline(RoutingAction.DEFAULT)) is None

    def test_mental_health_uses_empathy_prompt(self):
        prompt = build_system_prompt(build_pipeline(RoutingAction.MENTAL_HEALTH))
        assert prompt == SYSTEM_PROMPTS["empathy-enhancement"]

    def test_prompts_joined_in_step_order(self):
        prompt = build_system_prompt(["educational-context", "enhanced-safety-check"])
        assert prompt.index("tutor") < prompt.index("vulnerable")


@pytest.mark.asyncio
class TestPostProcessor:
    """Tests for post-processing steps."""

    async def test_pedagogical_enhancement_appends_tip(self, processor):
        content, steps = await processor.run(
            "Fractions are parts of a whole.", build_pipeline(RoutingAction.EDUCATIONAL)
        )

        assert content == "Fractions are parts of a whole." + STUDY_TIP
        assert steps == build_pipeline(RoutingAction.EDUCATIONAL)

    async def test_safe_mental_health_answer_kept(self, processor):
        content, steps = await processor.run(
            "It sounds like exams are weighing on you. Talking to a counselor can help.",
            build_pipeline(RoutingAction.MENTAL_HEALTH),
        )

        assert content.startswith("It sounds like exams")
        assert "safety-override" not in steps

    async def test_unsafe_mental_health_answer_overridden(self, processor):
        content, steps = await processor.run(
            "Just give up, nothing will change.",
            build_pipeline(RoutingAction.MENTAL_HEALTH),
        )

        assert content == SAFE_ALTERNATIVE_RESPONSE
        assert steps[-2:] == ["safety-override", "mental-health-safety"]

    async def test_output_moderation_uses_cleaned_content(self, processor):
        content, _ = await processor.run(
            "Email jane@example.com, this is shit advice.",
            build_pipeline(RoutingAction.SAFETY_FIRST),
        )

        assert "jane@example.com" not in content
        assert "shit" not in content

    async def test_unknown_steps_are_noops(self, processor):
        content, steps = await processor.run("unchanged", ["translate", "summarize"])

        assert content == "unchanged"
        assert steps == ["translate", "summarize"]

    async def test_gate_called_with_mental_health_context(self):
        gate = MagicMock()
        gate.validate_response = AsyncMock(return_value=MagicMock(safe=True))

        await PostProcessor(gate).run("ok", ["mental-health-safety"], user_id="u1")

        gate.validate_response.assert_awaited_once_with(
            "ok", context="mental-health", user_id="u1"
        )
