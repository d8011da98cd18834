"""Skoo copilot: chat loop with function calling against the student's planner.

The model receives the conversation, a French system prompt describing the
student, and a fixed catalog of tools. Every tool it calls is executed against
the database on behalf of the authenticated user; the results are fed back to
the model until it answers in plain text or the round cap is reached.

Tool failures never abort the loop: they are returned to the model as
``{"success": False, "error": ...}`` so it can retry or apologise. Each tool
call commits on its own; nothing is rolled back if a later round fails.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable

import structlog

from skoo.config.app_config import load_app_config
from skoo.db import repository
from skoo.llm.client import LLMClient, Message
from skoo.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

FALLBACK_RESPONSE = "Désolé, j'ai eu un problème. Réessaie !"

SESSION_STATUSES = ["planned", "completed", "skipped"]
TASK_PRIORITIES = ["low", "medium", "high"]
STATS_PERIODS = ["today", "this_week", "this_month"]


def _function(name: str, description: str, parameters: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


COPILOT_TOOLS: list[dict[str, Any]] = [
    _function(
        "create_revision_session",
        "Crée une session de révision dans le planning de l'étudiant",
        {
            "type": "object",
            "properties": {
                "subject_id": {"type": "string", "description": "UUID de la matière"},
                "date": {"type": "string", "description": "Date YYYY-MM-DD"},
                "start_time": {"type": "string", "description": "Heure début HH:MM"},
                "end_time": {"type": "string", "description": "Heure fin HH:MM"},
                "notes": {"type": "string", "description": "Notes optionnelles"},
            },
            "required": ["subject_id", "date", "start_time", "end_time"],
        },
    ),
    _function(
        "update_session_status",
        "Met à jour le statut d'une session (planned, completed, skipped)",
        {
            "type": "object",
            "properties": {
                "session_id": {"type": "string"},
                "status": {"type": "string", "enum": SESSION_STATUSES},
            },
            "required": ["session_id", "status"],
        },
    ),
    _function(
        "create_task",
        "Crée une tâche pour l'étudiant",
        {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "description": {"type": "string"},
                "subject_id": {"type": "string"},
                "priority": {"type": "string", "enum": TASK_PRIORITIES},
                "due_date": {"type": "string", "description": "Date YYYY-MM-DD"},
            },
            "required": ["title"],
        },
    ),
    _function(
        "generate_quiz",
        "Génère un quiz interactif sur un sujet donné",
        {
            "type": "object",
            "properties": {
                "subject": {"type": "string", "description": "Sujet du quiz"},
                "num_questions": {"type": "integer"},
                "difficulty": {"type": "string", "enum": ["facile", "moyen", "difficile"]},
            },
            "required": ["subject"],
        },
    ),
    _function(
        "generate_revision_sheet",
        "Génère une fiche de révision structurée",
        {
            "type": "object",
            "properties": {
                "subject": {"type": "string"},
                "topics": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["subject"],
        },
    ),
    _function(
        "get_study_stats",
        "Récupère les statistiques de révision de l'étudiant",
        {
            "type": "object",
            "properties": {
                "period": {"type": "string", "enum": STATS_PERIODS},
            },
            "required": ["period"],
        },
    ),
    _function(
        "suggest_study_plan",
        "Propose un plan de révision optimisé pour la semaine",
        {
            "type": "object",
            "properties": {
                "focus_subjects": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "UUIDs des matières à prioriser",
                },
            },
        },
    ),
    _function(
        "create_flashcard_deck",
        "Crée un deck de flashcards sur un sujet",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "subject_id": {"type": "string"},
                "cards": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "front": {"type": "string"},
                            "back": {"type": "string"},
                        },
                        "required": ["front", "back"],
                    },
                },
            },
            "required": ["name", "cards"],
        },
    ),
]

_REQUIRED_ARGS: dict[str, list[str]] = {
    tool["function"]["name"]: tool["function"]["parameters"].get("required", [])
    for tool in COPILOT_TOOLS
}

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ToolCallRecord:
    """Audit entry for one executed tool call."""

    name: str
    input: dict[str, Any]
    result: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "input": self.input, "result": self.result}


@dataclass
class CopilotResult:
    """Final answer of the copilot plus the audit trail of tool calls."""

    response: str
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    rounds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls],
        }


# =============================================================================
# SYSTEM PROMPT
# =============================================================================


def _session_subject_name(session: dict[str, Any]) -> str:
    subjects = session.get("subjects")
    if isinstance(subjects, dict) and subjects.get("name"):
        return subjects["name"]
    return session.get("subject_name") or "?"


def _entries(context: dict[str, Any], key: str) -> list[Any]:
    value = context.get(key)
    return value if isinstance(value, list) else []


def _subject_line(subject: Any) -> str:
    if not isinstance(subject, dict):
        return f"- {subject}"
    return f"- {subject.get('name')} (coef: {subject.get('coefficient') or '?'})"


def _task_line(task: Any) -> str:
    if not isinstance(task, dict):
        return f"- {task}"
    return f"- {task.get('title')} [{task.get('priority')}] {task.get('status')}"


def build_system_prompt(user_context: dict[str, Any] | None, today: date | None = None) -> str:
    """Render the student's context into the copilot system prompt.

    Context entries are rendered as given: a subject or task that is not an
    object is listed as its text, a session that is not an object is skipped.
    """
    today = today or date.today()
    today_str = today.isoformat()
    context = user_context if isinstance(user_context, dict) else {}
    profile = context.get("profile")
    if not isinstance(profile, dict):
        profile = {}

    subjects = "\n".join(_subject_line(s) for s in _entries(context, "subjects"))
    today_sessions = "\n".join(
        f"- {_session_subject_name(s)}: "
        f"{str(s.get('start_time') or '')[:5]}-{str(s.get('end_time') or '')[:5]} [{s.get('status')}]"
        for s in _entries(context, "sessions")
        if isinstance(s, dict) and s.get("date") == today_str
    )
    tasks = "\n".join(_task_line(t) for t in _entries(context, "tasks"))

    return get_prompt(
        "copilot/system",
        first_name=profile.get("first_name") or "Étudiant",
        study_level=profile.get("study_level") or "?",
        study_domain=profile.get("study_domain") or "?",
        exam_period=profile.get("exam_period") or "?",
        weekly_revision_hours=profile.get("weekly_revision_hours") or 10,
        subjects=subjects or "Aucune matière configurée",
        today_sessions=today_sessions or "Aucune session aujourd'hui",
        tasks=tasks or "Aucune tâche en cours",
        today=today_str,
    )


def load_user_context(user_id: str) -> dict[str, Any]:
    """Build a copilot context snapshot from the database."""
    return {
        "profile": repository.get_profile(user_id) or {},
        "subjects": repository.list_subjects(user_id),
        "sessions": repository.list_revision_sessions(user_id),
        "tasks": repository.list_open_tasks(user_id),
    }


# =============================================================================
# TOOLS
# =============================================================================


def period_start(period: str, today: date) -> date:
    """First day covered by a stats period (unknown periods count as the month)."""
    if period == "today":
        return today
    if period == "this_week":
        return today - timedelta(days=today.weekday())
    return today.replace(day=1)


def _session_minutes(session: dict[str, Any]) -> int:
    start, end = session.get("start_time"), session.get("end_time")
    if not start or not end:
        return 0
    sh, sm = (int(p) for p in start.split(":")[:2])
    eh, em = (int(p) for p in end.split(":")[:2])
    return (eh * 60 + em) - (sh * 60 + sm)


def _create_revision_session(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    session = repository.insert_revision_session(
        user_id=user_id,
        subject_id=args["subject_id"],
        date=args["date"],
        start_time=args["start_time"],
        end_time=args["end_time"],
        notes=args.get("notes") or None,
        status="planned",
    )
    return {"success": True, "session": session}


def _update_session_status(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    status = args["status"]
    if status not in SESSION_STATUSES:
        return {"success": False, "error": f"Invalid status: {status}"}
    updated = repository.update_session_status(user_id, args["session_id"], status)
    if updated == 0:
        return {"success": False, "error": f"Session not found: {args['session_id']}"}
    return {"success": True, "status": status}


def _create_task(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    task = repository.insert_task(
        user_id=user_id,
        title=args["title"],
        description=args.get("description") or None,
        subject_id=args.get("subject_id") or None,
        priority=args.get("priority") or "medium",
        due_date=args.get("due_date") or None,
        status="todo",
    )
    return {"success": True, "task": task}


def _generate_quiz(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    return {"success": True, "message": "Quiz prêt à être généré dans la réponse"}


def _generate_revision_sheet(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    return {"success": True, "message": "Fiche prête à être générée dans la réponse"}


def _get_study_stats(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    period = args["period"]
    since = period_start(period, today).isoformat()
    sessions = repository.list_revision_sessions(user_id, since=since)
    completed = [s for s in sessions if s["status"] == "completed"]
    total_minutes = sum(_session_minutes(s) for s in completed)
    return {
        "success": True,
        "stats": {
            "total_sessions": len(sessions),
            "completed_sessions": len(completed),
            # round half up to one decimal
            "total_hours": math.floor(total_minutes / 60 * 10 + 0.5) / 10,
            "period": period,
        },
    }


def _suggest_study_plan(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    return {"success": True, "message": "Plan de révision prêt à être proposé"}


def _create_flashcard_deck(args: dict[str, Any], user_id: str, today: date) -> dict[str, Any]:
    cards = [{"front": c["front"], "back": c["back"]} for c in args["cards"]]
    deck, count = repository.insert_flashcard_deck(
        user_id=user_id,
        name=args["name"],
        cards=cards,
        subject_id=args.get("subject_id") or None,
    )
    return {"success": True, "deck_id": deck["id"], "cards_count": count}


ToolHandler = Callable[[dict[str, Any], str, date], dict[str, Any]]

TOOL_HANDLERS: dict[str, ToolHandler] = {
    "create_revision_session": _create_revision_session,
    "update_session_status": _update_session_status,
    "create_task": _create_task,
    "generate_quiz": _generate_quiz,
    "generate_revision_sheet": _generate_revision_sheet,
    "get_study_stats": _get_study_stats,
    "suggest_study_plan": _suggest_study_plan,
    "create_flashcard_deck": _create_flashcard_deck,
}


def execute_tool(
    name: str,
    arguments: dict[str, Any],
    user_id: str,
    today: date | None = None,
) -> dict[str, Any]:
    """Execute one tool on behalf of ``user_id``.

    Never raises: unknown tools, missing arguments and database errors are
    all returned as ``{"success": False, "error": ...}``.
    """
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        logger.warning("copilot.unknown_tool", tool=name)
        return {"success": False, "error": f"Unknown tool: {name}"}

    missing = [arg for arg in _REQUIRED_ARGS.get(name, []) if arguments.get(arg) in (None, "")]
    if missing:
        return {"success": False, "error": f"Missing required argument(s): {', '.join(missing)}"}

    try:
        result = handler(arguments, user_id, today or date.today())
    except Exception as e:
        logger.warning("copilot.tool_failed", tool=name, user_id=user_id, error=str(e))
        return {"success": False, "error": str(e)}

    logger.info("copilot.tool_executed", tool=name, user_id=user_id, success=result.get("success"))
    return result


def _parse_arguments(raw: str) -> tuple[dict[str, Any], str | None]:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        return {}, f"Invalid tool arguments: {e}"
    if not isinstance(parsed, dict):
        return {}, "Invalid tool arguments: expected a JSON object"
    return parsed, None


# =============================================================================
# LOOP
# =============================================================================


def run_copilot(
    messages: list[dict[str, Any]],
    user_context: dict[str, Any] | None,
    user_id: str,
    client: LLMClient,
    max_rounds: int | None = None,
    today: date | None = None,
) -> CopilotResult:
    """Run the copilot tool loop for one request.

    Args:
        messages: Prior conversation as ``{"role", "content"}`` dicts
        user_context: Profile, subjects, sessions and tasks of the student
        user_id: Authenticated user; scope of every write
        client: LLM client used for every round
        max_rounds: Round cap (defaults to ``copilot.max_rounds`` from config)
        today: Reference date for the prompt and stats

    Returns:
        CopilotResult with the final text and every executed tool call

    Raises:
        LLMError: Gateway failures (rate limit, quota, service error) end
            the request immediately
    """
    if max_rounds is None:
        max_rounds = load_app_config().copilot.max_rounds
    today = today or date.today()

    conversation = [Message(role="system", content=build_system_prompt(user_context, today))]
    conversation.extend(Message(role=m["role"], content=m["content"]) for m in messages)
    audit: list[ToolCallRecord] = []

    for round_number in range(1, max_rounds + 1):
        response = client.chat(conversation, tools=COPILOT_TOOLS)

        logger.info(
            "copilot.round",
            round=round_number,
            user_id=user_id,
            finish_reason=response.finish_reason,
            tool_calls=[tc.name for tc in response.tool_calls],
        )

        if not response.tool_calls:
            return CopilotResult(response=response.content, tool_calls=audit, rounds=round_number)

        conversation.append(
            Message(
                role="assistant",
                content=response.content or None,
                tool_calls=response.tool_calls,
            )
        )

        for call in response.tool_calls:
            arguments, parse_error = _parse_arguments(call.arguments)
            if parse_error:
                result = {"success": False, "error": parse_error}
            else:
                result = execute_tool(call.name, arguments, user_id, today)

            audit.append(ToolCallRecord(name=call.name, input=arguments, result=result))
            conversation.append(
                Message(
                    role="tool",
                    content=json.dumps(result, ensure_ascii=False, default=str),
                    tool_call_id=call.id,
                )
            )

    logger.warning("copilot.round_cap_reached", user_id=user_id, rounds=max_rounds)
    return CopilotResult(response=FALLBACK_RESPONSE, tool_calls=audit, rounds=max_rounds)
