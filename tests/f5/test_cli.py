"""Tests for CLI commands."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from skoo.cli.commands import app
from skoo.config.app_config import clear_config_cache
from skoo.db import repository
from skoo.llm.client import LLMRateLimitError, ToolCall

runner = CliRunner()

ICS = """BEGIN:VCALENDAR
VERSION:2.0
BEGIN:VEVENT
UID:1
DTSTART:20260312T080000Z
DTEND:20260312T100000Z
SUMMARY:Physique - Amphi A
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Run every command from a temp dir so db/ is created there."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


@pytest.fixture
def mock_llm_client():
    client = MagicMock()
    client.config.provider = "gateway"
    client.config.model = "test-model"
    return client


class TestInitDb:
    def test_creates_database(self, workdir):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert (workdir / "db" / "skoo.db").exists()

    def test_custom_path(self, workdir):
        result = runner.invoke(app, ["init-db", "--db", "other/x.db"])

        assert result.exit_code == 0
        assert (workdir / "other" / "x.db").exists()


class TestAsk:
    def test_prints_answer_and_tool_calls(self, user, mock_llm_client, llm_response):
        mock_llm_client.chat.side_effect = [
            llm_response(tool_calls=[ToolCall(id="c", name="create_task", arguments=json.dumps({"title": "Fiches"}))]),
            llm_response("Tâche ajoutée !"),
        ]

        with patch("skoo.cli.commands.LLMClient", return_value=mock_llm_client):
            result = runner.invoke(app, ["ask", user["id"], "Ajoute une tâche Fiches"])

        assert result.exit_code == 0
        assert "create_task" in result.stdout
        assert "Tâche ajoutée !" in result.stdout
        assert [t["title"] for t in repository.list_open_tasks(user["id"])] == ["Fiches"]

    def test_rate_limited(self, user, mock_llm_client):
        mock_llm_client.chat.side_effect = LLMRateLimitError("Rate limit exceeded")

        with patch("skoo.cli.commands.LLMClient", return_value=mock_llm_client):
            result = runner.invoke(app, ["ask", user["id"], "Salut"])

        assert result.exit_code == 1
        assert "Trop de requêtes" in result.stdout

    def test_unknown_user(self, temp_db, mock_llm_client):
        with patch("skoo.cli.commands.LLMClient", return_value=mock_llm_client):
            result = runner.invoke(app, ["ask", "nobody", "Salut"])

        assert result.exit_code == 1
        assert "introuvable" in result.stdout
        mock_llm_client.chat.assert_not_called()


class TestImportCalendar:
    def test_imports_file(self, user, workdir):
        ics_file = workdir / "edt.ics"
        ics_file.write_text(ICS, encoding="utf-8")

        result = runner.invoke(app, ["import-calendar", user["id"], str(ics_file)])

        assert result.exit_code == 0
        assert "1 événements importés" in result.stdout
        events = repository.list_calendar_events(user["id"])
        assert events[0]["subject_name"] == "Physique"
        assert events[0]["calendar_name"] == "edt"

    def test_missing_file(self, user):
        result = runner.invoke(app, ["import-calendar", user["id"], "nope.ics"])

        assert result.exit_code == 1
        assert "introuvable" in result.stdout


class TestSendReminders:
    def test_reports_counts(self, temp_db):
        result = runner.invoke(app, ["send-reminders"])

        assert result.exit_code == 0
        assert "Sessions" in result.stdout
        assert "Examens" in result.stdout

    def test_exams_only(self, temp_db):
        result = runner.invoke(app, ["send-reminders", "--no-sessions"])

        assert result.exit_code == 0
        assert "Sessions" not in result.stdout


class TestTrialStatus:
    def test_school_member(self, user):
        repository.add_school_member(user["id"], "school-1")

        result = runner.invoke(app, ["trial-status", user["id"]])

        assert result.exit_code == 0
        assert "major" in result.stdout
        assert "school" in result.stdout

    def test_no_access(self, user):
        result = runner.invoke(app, ["trial-status", user["id"]])

        assert result.exit_code == 0
        assert "Aucun accès actif" in result.stdout

    def test_unknown_user(self, temp_db):
        result = runner.invoke(app, ["trial-status", "nobody"])
        assert result.exit_code == 1
