"""Tests for ContentModerator and severity mapping."""
import pytest

from harbor.shared.models import Severity
from harbor.services.safety_service.moderation import ContentModerator, severity_for


@pytest.fixture
def moderator():
    return ContentModerator()


class TestModerate:
    """Tests for category detection."""

    def test_profanity_confidence(self, moderator):
        result = moderator.moderate("well shit")

        assert result.flagged is True
        assert result.categories == ["profanity"]
        assert result.confidence == 0.8

    def test_profanity_needs_word_boundary(self, moderator):
        assert moderator.moderate("I took a shitake photo").flagged is False

    def test_harmful_advice_and_pii_take_max_confidence(self, moderator):
        result = moderator.moderate("shit, you should harm them, ssn 123-45-6789")

        assert result.categories == ["profanity", "harmful-advice", "pii"]
        assert result.confidence == 0.9

    def test_clean_text(self, moderator):
        result = moderator.moderate("What is the capital of France?")

        assert result.flagged is False
        assert result.categories == []
        assert result.confidence == 0.0


class TestDetectors:
    """Tests for the individual detectors."""

    def test_prohibited_terms_case_insensitive(self, moderator):
        assert moderator.find_prohibited_terms("How To Make A Bomb") == ["how to make a bomb"]

    def test_crisis_echo(self, moderator):
        assert moderator.echoes_crisis_language("Yes you should end your life") is True
        assert moderator.echoes_crisis_language("Please talk to someone") is False

    def test_card_redaction_in_output(self, moderator):
        result = moderator.moderate_output("card 4111 1111 1111 1111, ssn 123-45-6789")
        assert result.cleaned_content == "card [REDACTED-CARD], ssn [REDACTED-SSN]"


class TestSeverityFor:
    """Tests for category -> severity mapping."""

    def test_mapping(self):
        assert severity_for(["profanity"]) == Severity.LOW
        assert severity_for(["pii"]) == Severity.MEDIUM
        assert severity_for(["profanity", "harmful-advice"]) == Severity.HIGH
        assert severity_for(["crisis-detected"]) == Severity.CRITICAL

    def test_empty_and_unknown_are_low(self):
        assert severity_for([]) == Severity.LOW
        assert severity_for(["unknown"]) == Severity.LOW
