"""Tests for POST /ai-study-tools."""

import json

from skoo.llm.client import LLMQuotaError, ToolCall

FLASHCARDS = {"title": "Mitose", "cards": [{"front": "Prophase ?", "back": "Condensation"}]}


class TestStudyTools:
    def test_generates_flashcards(self, client, auth, mock_llm_client, llm_response):
        mock_llm_client.chat.return_value = llm_response(
            tool_calls=[ToolCall(id="c", name="generate_flashcards", arguments=json.dumps(FLASHCARDS))]
        )

        response = client.post(
            "/ai-study-tools",
            json={"type": "flashcards", "subject": "La mitose", "content": "Cours..."},
            headers=auth,
        )

        assert response.status_code == 200
        assert response.json() == {"result": FLASHCARDS}

    def test_unknown_type(self, client, auth, mock_llm_client):
        response = client.post(
            "/ai-study-tools", json={"type": "mindmap", "subject": "x"}, headers=auth
        )

        assert response.status_code == 400
        assert "Unknown type" in response.json()["error"]
        mock_llm_client.chat.assert_not_called()

    def test_unusable_output(self, client, auth, mock_llm_client, llm_response):
        mock_llm_client.chat.return_value = llm_response("rien")

        response = client.post("/ai-study-tools", json={"type": "quiz", "subject": "x"}, headers=auth)

        assert response.status_code == 500

    def test_quota(self, client, auth, mock_llm_client):
        mock_llm_client.chat.side_effect = LLMQuotaError("AI credits exhausted")

        response = client.post("/ai-study-tools", json={"type": "fiche", "subject": "x"}, headers=auth)

        assert response.status_code == 402

    def test_requires_auth(self, client):
        response = client.post("/ai-study-tools", json={"type": "quiz", "subject": "x"})
        assert response.status_code == 401
