"""Pipeline steps around the model call.

Pre-processing steps shape the system prompt sent with the query.
Post-processing steps run in pipeline order over the generated text;
unrecognized steps are no-ops.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from harbor.services.safety_service import (
    MENTAL_HEALTH_CONTEXT,
    SAFE_ALTERNATIVE_RESPONSE,
    SafetyGate,
)

logger = logging.getLogger(__name__)

SAFETY_OVERRIDE_STEP = "safety-override"

STUDY_TIP = (
    "\n\n📚 **Study Tip**: Try breaking this concept into smaller parts and "
    "practice with examples to reinforce your understanding."
)

SYSTEM_PROMPTS = {
    "educational-context": (
        "You are a patient tutor. Explain concepts step by step, check for "
        "understanding, and encourage the student to reason through problems."
    ),
    "empathy-enhancement": (
        "Respond with warmth and empathy. Acknowledge the person's feelings, avoid "
        "judgement, and gently point toward professional support when appropriate."
    ),
    "enhanced-safety-check": (
        "The user may be vulnerable. Never provide instructions that could cause harm, "
        "and include crisis resources (such as calling or texting 988 in the US) if "
        "there is any sign of risk."
    ),
}


def build_system_prompt(steps: Sequence[str]) -> Optional[str]:
    """Join the system prompts contributed by pre-processing steps."""
    parts = [SYSTEM_PROMPTS[step] for step in steps if step in SYSTEM_PROMPTS]
    return "\n\n".join(parts) if parts else None


class PostProcessor:
    """Applies post-processing steps to generated text."""

    def __init__(self, gate: SafetyGate):
        self.gate = gate

    async def run(
        self, content: str, steps: Sequence[str], user_id: Optional[str] = None
    ) -> Tuple[str, List[str]]:
        """Walk the pipeline over generated content.

        Args:
            content: Model output
            steps: Pipeline steps in order
            user_id: Recipient, for escalation of unsafe output

        Returns:
            (final content, steps walked including any safety override)
        """
        applied: List[str] = []
        for step in steps:
            if step == "mental-health-safety":
                verdict = await self.gate.validate_response(
                    content, context=MENTAL_HEALTH_CONTEXT, user_id=user_id
                )
                if not verdict.safe:
                    logger.warning(
                        "POSTPROCESS_SAFETY_OVERRIDE",
                        extra={"violations": verdict.violations}
                    )
                    content = SAFE_ALTERNATIVE_RESPONSE
                    applied.append(SAFETY_OVERRIDE_STEP)

            elif step == "pedagogical-enhancement":
                content = content + STUDY_TIP

            elif step == "output-moderation":
                moderation = self.gate.moderate_output(content)
                if moderation.flagged and moderation.cleaned_content is not None:
                    content = moderation.cleaned_content

            applied.append(step)
        return content, applied
