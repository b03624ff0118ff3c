"""Scripted user-facing texts.

Every message a user sees from the safety path comes from here; internal
detail never reaches the caller.
"""
from harbor.shared.models import CrisisType

CRISIS_RESPONSES = {
    CrisisType.SUICIDE: (
        "I'm really concerned about you right now. Your life has value and there are "
        "people who want to help. Please reach out to a crisis helpline immediately:\n\n"
        "🇺🇸 US: Call or text 988 (Suicide & Crisis Lifeline)\n"
        "🇵🇭 Philippines: Call 1553 (Hopeline Philippines)\n\n"
        "You can also go to your nearest emergency room or call emergency services. "
        "You don't have to face this alone."
    ),
    CrisisType.SELF_HARM: (
        "I'm worried about you and want to help you stay safe. Self-harm might provide "
        "temporary relief, but there are healthier ways to cope with difficult feelings. "
        "Please consider reaching out for support:\n\n"
        "🇺🇸 US: Call or text 988\n"
        "🇵🇭 Philippines: Call 1553\n\n"
        "A counselor or therapist can help you work through these feelings safely."
    ),
    CrisisType.VIOLENCE: (
        "I'm concerned about these thoughts. If you're having thoughts of harming others, "
        "it's important to talk to a mental health professional right away. Please call:\n\n"
        "🇺🇸 US: 988 or go to your nearest emergency room\n"
        "🇵🇭 Philippines: 1553 or contact emergency services\n\n"
        "Getting help shows strength, not weakness."
    ),
}

DEFAULT_CRISIS_RESPONSE = (
    "I'm concerned about what you've shared. It sounds like you might be going through "
    "a really difficult time. Please consider talking to someone who can provide the "
    "right kind of support:\n\n"
    "🇺🇸 US: 988 (free, confidential, 24/7)\n"
    "🇵🇭 Philippines: 1553\n\n"
    "You matter, and help is available."
)

CONSENT_REQUIRED_MESSAGE = (
    "Mental health support requires explicit consent. "
    "Please enable mental health features in your settings."
)
COMMUNITY_GUIDELINES_MESSAGE = "Content violates community guidelines"
PROHIBITED_CONTENT_MESSAGE = "Query contains prohibited content"
VALIDATION_ERROR_MESSAGE = "Unable to validate query safety. Please try again."
HARMFUL_RESPONSE_MESSAGE = "Response contains potentially harmful advice"
MENTAL_HEALTH_RESPONSE_MESSAGE = "Response not appropriate for mental health context"

DEFAULT_SAFETY_MESSAGE = (
    "I'm here to help with educational and supportive conversations. "
    "Please feel free to ask me about study topics or general questions."
)

SAFE_ALTERNATIVE_RESPONSE = (
    "I understand you're going through a difficult time. It's important to talk to "
    "someone who can provide proper support. Please consider reaching out to a mental "
    "health professional or a crisis helpline. In the US, you can call 988 for the "
    "Suicide & Crisis Lifeline. Remember, you're not alone and help is available."
)


def crisis_response(crisis_type: CrisisType) -> str:
    """Crisis-resource text for a crisis type (default text for NONE)."""
    return CRISIS_RESPONSES.get(crisis_type, DEFAULT_CRISIS_RESPONSE)
