"""Tests for copilot tool execution."""

from datetime import date

import pytest

from skoo.core.copilot import (
    COPILOT_TOOLS,
    TOOL_HANDLERS,
    build_system_prompt,
    execute_tool,
    load_user_context,
    period_start,
)
from skoo.db import repository
from skoo.db.database import OWNERSHIP_ERROR


class TestToolCatalog:
    def test_eight_tools(self):
        names = [t["function"]["name"] for t in COPILOT_TOOLS]
        assert names == [
            "create_revision_session",
            "update_session_status",
            "create_task",
            "generate_quiz",
            "generate_revision_sheet",
            "get_study_stats",
            "suggest_study_plan",
            "create_flashcard_deck",
        ]
        assert set(names) == set(TOOL_HANDLERS)

    def test_openai_function_shape(self):
        for tool in COPILOT_TOOLS:
            assert tool["type"] == "function"
            assert tool["function"]["parameters"]["type"] == "object"


class TestExecuteTool:
    """execute_tool never raises: failures come back as {success: False}."""

    def test_unknown_tool(self, user):
        result = execute_tool("launch_rocket", {}, user["id"])
        assert result == {"success": False, "error": "Unknown tool: launch_rocket"}

    def test_missing_required_argument(self, user, maths):
        result = execute_tool(
            "create_revision_session",
            {"subject_id": maths["id"], "date": "2026-03-12", "start_time": "14:00"},
            user["id"],
        )
        assert result["success"] is False
        assert "end_time" in result["error"]

    def test_create_revision_session(self, user, maths):
        result = execute_tool(
            "create_revision_session",
            {
                "subject_id": maths["id"],
                "date": "2026-03-12",
                "start_time": "14:00",
                "end_time": "16:00",
                "notes": "Chapitre 4",
            },
            user["id"],
        )

        assert result["success"] is True
        session = result["session"]
        assert session["status"] == "planned"
        assert session["user_id"] == user["id"]
        assert session["notes"] == "Chapitre 4"
        assert len(repository.list_revision_sessions(user["id"])) == 1

    def test_create_revision_session_on_foreign_subject(self, maths, other_user):
        result = execute_tool(
            "create_revision_session",
            {"subject_id": maths["id"], "date": "2026-03-12", "start_time": "14:00", "end_time": "16:00"},
            other_user["id"],
        )

        assert result["success"] is False
        assert OWNERSHIP_ERROR in result["error"]
        assert repository.list_revision_sessions(other_user["id"]) == []

    def test_update_session_status(self, user, maths):
        session = repository.insert_revision_session(user["id"], maths["id"], "2026-03-12", "14:00", "15:00")

        result = execute_tool(
            "update_session_status", {"session_id": session["id"], "status": "completed"}, user["id"]
        )

        assert result == {"success": True, "status": "completed"}

    def test_update_session_status_invalid(self, user, maths):
        session = repository.insert_revision_session(user["id"], maths["id"], "2026-03-12", "14:00", "15:00")

        result = execute_tool(
            "update_session_status", {"session_id": session["id"], "status": "cancelled"}, user["id"]
        )

        assert result["success"] is False
        assert "Invalid status" in result["error"]

    def test_update_other_users_session_not_found(self, user, maths, other_user):
        session = repository.insert_revision_session(user["id"], maths["id"], "2026-03-12", "14:00", "15:00")

        result = execute_tool(
            "update_session_status", {"session_id": session["id"], "status": "skipped"}, other_user["id"]
        )

        assert result == {"success": False, "error": f"Session not found: {session['id']}"}
        assert repository.list_revision_sessions(user["id"])[0]["status"] == "planned"

    def test_create_task_defaults(self, user):
        result = execute_tool("create_task", {"title": "Relire le cours"}, user["id"])

        assert result["success"] is True
        assert result["task"]["status"] == "todo"
        assert result["task"]["priority"] == "medium"

    def test_create_task_with_subject(self, user, maths):
        result = execute_tool(
            "create_task",
            {"title": "Exercices", "subject_id": maths["id"], "priority": "high", "due_date": "2026-03-20"},
            user["id"],
        )
        assert result["task"]["subject_id"] == maths["id"]
        assert result["task"]["priority"] == "high"

    @pytest.mark.parametrize(
        "name,args",
        [
            ("generate_quiz", {"subject": "Maths"}),
            ("generate_revision_sheet", {"subject": "Maths", "topics": ["Dérivées"]}),
            ("suggest_study_plan", {}),
        ],
    )
    def test_acknowledgement_tools(self, user, name, args):
        result = execute_tool(name, args, user["id"])
        assert result["success"] is True
        assert result["message"]

    def test_create_flashcard_deck(self, user, maths):
        result = execute_tool(
            "create_flashcard_deck",
            {
                "name": "Dérivées",
                "subject_id": maths["id"],
                "cards": [{"front": "(x²)'", "back": "2x"}, {"front": "(ln x)'", "back": "1/x"}],
            },
            user["id"],
        )

        assert result["success"] is True
        assert result["cards_count"] == 2
        assert repository.count_flashcards(result["deck_id"]) == 2

    def test_create_flashcard_deck_foreign_subject_is_atomic(self, maths, other_user):
        result = execute_tool(
            "create_flashcard_deck",
            {"name": "Vol", "subject_id": maths["id"], "cards": [{"front": "a", "back": "b"}]},
            other_user["id"],
        )
        assert result["success"] is False


class TestStudyStats:
    @pytest.fixture
    def sessions(self, user, maths):
        rows = [
            ("2026-03-11", "10:00", "11:30", "completed"),
            ("2026-03-10", "14:00", "15:00", "completed"),
            ("2026-03-09", "09:00", "10:00", "planned"),
            ("2026-03-01", "08:00", "10:00", "completed"),
            ("2026-02-27", "08:00", "12:00", "completed"),
        ]
        for day, start, end, status in rows:
            session = repository.insert_revision_session(user["id"], maths["id"], day, start, end)
            if status != "planned":
                repository.update_session_status(user["id"], session["id"], status)

    def _stats(self, user, period, today):
        result = execute_tool("get_study_stats", {"period": period}, user["id"], today)
        assert result["success"] is True
        return result["stats"]

    def test_today(self, user, sessions, today):
        stats = self._stats(user, "today", today)
        assert stats == {"total_sessions": 1, "completed_sessions": 1, "total_hours": 1.5, "period": "today"}

    def test_this_week_starts_monday(self, user, sessions, today):
        stats = self._stats(user, "this_week", today)
        assert stats["total_sessions"] == 3
        assert stats["completed_sessions"] == 2
        assert stats["total_hours"] == 2.5

    def test_this_month(self, user, sessions, today):
        stats = self._stats(user, "this_month", today)
        assert stats["total_sessions"] == 4
        assert stats["completed_sessions"] == 3
        assert stats["total_hours"] == 4.5

    def test_hours_round_half_up(self, user, maths, today):
        session = repository.insert_revision_session(user["id"], maths["id"], "2026-03-11", "10:00", "10:15")
        repository.update_session_status(user["id"], session["id"], "completed")

        assert self._stats(user, "today", today)["total_hours"] == 0.3

    def test_no_sessions(self, user, today):
        stats = self._stats(user, "this_week", today)
        assert stats["total_sessions"] == 0
        assert stats["total_hours"] == 0


class TestPeriodStart:
    def test_today(self, today):
        assert period_start("today", today) == today

    def test_week(self, today):
        assert period_start("this_week", today) == date(2026, 3, 9)

    def test_week_on_monday(self):
        assert period_start("this_week", date(2026, 3, 9)) == date(2026, 3, 9)

    def test_week_on_sunday(self):
        assert period_start("this_week", date(2026, 3, 15)) == date(2026, 3, 9)

    def test_month_and_unknown(self, today):
        assert period_start("this_month", today) == date(2026, 3, 1)
        assert period_start("this_year", today) == date(2026, 3, 1)


class TestSystemPrompt:
    def test_empty_context_defaults(self, today):
        prompt = build_system_prompt({}, today)

        assert "Étudiant" in prompt
        assert "Aucune matière configurée" in prompt
        assert "Aucune session aujourd'hui" in prompt
        assert "Aucune tâche en cours" in prompt
        assert "2026-03-11" in prompt
        assert "10h" in prompt

    def test_context_rendered(self, today):
        context = {
            "profile": {"first_name": "Léa", "study_level": "L2"},
            "subjects": [{"name": "Maths", "coefficient": 4}, {"name": "Anglais"}],
            "sessions": [
                {"date": "2026-03-11", "start_time": "14:00:00", "end_time": "16:00:00",
                 "status": "planned", "subjects": {"name": "Maths"}},
                {"date": "2026-03-12", "start_time": "09:00", "end_time": "10:00",
                 "status": "planned", "subject_name": "Physique"},
            ],
            "tasks": [{"title": "Exercices", "priority": "high", "status": "todo"}],
        }

        prompt = build_system_prompt(context, today)

        assert "Léa" in prompt
        assert "- Maths (coef: 4)" in prompt
        assert "- Anglais (coef: ?)" in prompt
        assert "- Maths: 14:00-16:00 [planned]" in prompt
        assert "Physique" not in prompt
        assert "- Exercices [high] todo" in prompt

    def test_context_values_rendered_as_given(self, today):
        prompt = build_system_prompt({"profile": {"first_name": "{today}"}}, today)

        assert "- Prénom : {today}" in prompt
        assert "Date du jour : 2026-03-11" in prompt

    def test_entries_that_are_not_objects(self, today):
        context = {
            "profile": ["Léa"],
            "subjects": ["Maths", {"name": "Anglais"}],
            "sessions": ["14h Maths"],
            "tasks": "Lire",
        }

        prompt = build_system_prompt(context, today)

        assert "- Prénom : Étudiant" in prompt
        assert "- Maths\n- Anglais (coef: ?)" in prompt
        assert "Aucune session aujourd'hui" in prompt
        assert "Aucune tâche en cours" in prompt

    def test_load_user_context(self, user, maths):
        repository.insert_task(user["id"], "Lire")
        context = load_user_context(user["id"])

        assert context["profile"]["first_name"] == "Léa"
        assert [s["name"] for s in context["subjects"]] == ["Maths"]
        assert [t["title"] for t in context["tasks"]] == ["Lire"]
        assert context["sessions"] == []
