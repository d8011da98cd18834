"""Tests for coach messages."""

from unittest.mock import MagicMock

import pytest

from skoo.core.coach import (
    EMPTY_REPLY_MESSAGE,
    FALLBACK_MESSAGES,
    UNEXPECTED_ERROR_MESSAGE,
    CoachContext,
    build_coach_prompt,
    fallback_message,
    generate_coach_message,
)
from skoo.llm.client import LLMConnectionError, LLMQuotaError


@pytest.fixture
def mock_llm_client():
    client = MagicMock()
    client.simple_chat.return_value = "  Tu gères, continue !  "
    return client


class TestBuildCoachPrompt:
    def test_motivation_with_progress(self):
        context = CoachContext(
            first_name="Léa",
            total_hours_this_week=10,
            completed_hours_this_week=4,
            next_exam_subject="Maths",
            next_exam_days=5,
            today_sessions_count=2,
        )

        prompt = build_coach_prompt(context, "motivation")

        assert "nommé Léa" in prompt
        assert "4h faites sur 10h planifiées" in prompt
        assert "Maths dans 5 jours" in prompt
        assert "2 sessions prévues" in prompt

    def test_greeting(self):
        prompt = build_coach_prompt(CoachContext(), "greeting")
        assert "message d'accueil" in prompt
        assert "nommé" not in prompt

    def test_celebration_without_hours(self):
        prompt = build_coach_prompt(CoachContext(), "celebration")
        assert "terminé une session" in prompt

    def test_unknown_type_is_motivation(self):
        assert "motivation" in build_coach_prompt(CoachContext(), "whatever")


class TestGenerateCoachMessage:
    def test_uses_short_warm_settings(self, mock_llm_client):
        message = generate_coach_message(CoachContext(first_name="Léa"), "greeting", mock_llm_client)

        assert message == "Tu gères, continue !"
        kwargs = mock_llm_client.simple_chat.call_args.kwargs
        assert kwargs["temperature"] == 0.8
        assert kwargs["max_tokens"] == 100

    @pytest.mark.parametrize("error", [LLMConnectionError("down"), LLMQuotaError("402")])
    def test_fallback_on_gateway_error(self, mock_llm_client, error):
        mock_llm_client.simple_chat.side_effect = error

        message = generate_coach_message(CoachContext(), "tip", mock_llm_client)

        assert message in FALLBACK_MESSAGES["tip"]

    def test_unexpected_error_returns_fixed_message(self, mock_llm_client):
        mock_llm_client.simple_chat.side_effect = RuntimeError("boom")

        message = generate_coach_message(CoachContext(), "tip", mock_llm_client)

        assert message == UNEXPECTED_ERROR_MESSAGE

    def test_empty_reply(self, mock_llm_client):
        mock_llm_client.simple_chat.return_value = "   "
        assert generate_coach_message(CoachContext(), "motivation", mock_llm_client) == EMPTY_REPLY_MESSAGE

    def test_fallback_for_unknown_type(self):
        assert fallback_message("nope") in FALLBACK_MESSAGES["motivation"]
