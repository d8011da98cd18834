"""Short spoken coach messages (greeting, motivation, reminder, ...).

Messages are meant for text-to-speech: one or two sentences, no emoji.
The coach never fails: when the gateway is unavailable a canned message
for the requested type is returned instead, and any other error yields a
fixed encouragement.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Literal

import structlog

from skoo.llm.client import LLMClient, LLMError
from skoo.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

CoachMessageType = Literal["motivation", "greeting", "reminder", "celebration", "tip"]

EMPTY_REPLY_MESSAGE = "Continue comme ça !"
UNEXPECTED_ERROR_MESSAGE = "Continue comme ça, tu fais du super boulot !"

FALLBACK_MESSAGES: dict[str, list[str]] = {
    "greeting": [
        "Content de te revoir ! Prêt à avancer dans tes révisions ?",
        "Hey ! C'est le moment de briller !",
    ],
    "motivation": [
        "Chaque session compte. Tu fais du super boulot !",
        "Continue comme ça, tu es sur la bonne voie !",
    ],
    "reminder": [
        "Une petite session de révision ? Tu vas voir, ça passe vite !",
        "C'est le moment idéal pour commencer !",
    ],
    "celebration": [
        "Bravo ! Continue sur cette lancée !",
        "Excellent travail ! Tu peux être fier de toi !",
    ],
    "tip": [
        "Essaie la technique Pomodoro : 25 minutes de focus, 5 de pause.",
        "Révise le matin quand ton cerveau est frais !",
    ],
}


@dataclass
class CoachContext:
    """What the coach knows about the student."""

    first_name: str | None = None
    total_hours_this_week: float | None = None
    completed_hours_this_week: float | None = None
    next_exam_subject: str | None = None
    next_exam_days: int | None = None
    today_sessions_count: int | None = None
    streak_days: int | None = None


def build_coach_prompt(context: CoachContext, message_type: str) -> str:
    """Build the user prompt for a coach message type."""
    named = f" nommé {context.first_name}" if context.first_name else ""

    if message_type == "greeting":
        return (
            f"Génère un message d'accueil pour un étudiant{named} qui vient d'ouvrir "
            "l'application. Sois chaleureux et motivant."
        )

    if message_type == "reminder":
        lines = [
            f"Génère un rappel doux pour un étudiant{named} qui doit commencer ses révisions. "
            "Ne sois pas moralisateur, juste encourageant."
        ]
        if context.today_sessions_count:
            lines.append(f"Il a {context.today_sessions_count} sessions prévues aujourd'hui.")
        return "\n".join(lines)

    if message_type == "celebration":
        if context.completed_hours_this_week:
            detail = f"Il a fait {context.completed_hours_this_week}h de révision cette semaine!"
        else:
            detail = "Il a terminé une session de révision!"
        return (
            f"Génère un message de félicitations pour un étudiant{named} "
            f"qui a accompli quelque chose.\n{detail}"
        )

    if message_type == "tip":
        return (
            f"Génère un conseil d'étude court et actionnable pour un étudiant{named}. "
            "Sois pratique et motivant."
        )

    lines = [f"Génère un message de motivation pour un étudiant{named}."]
    if context.total_hours_this_week:
        lines.append(
            f"Cette semaine: {context.completed_hours_this_week or 0}h faites "
            f"sur {context.total_hours_this_week}h planifiées."
        )
    if context.next_exam_subject and context.next_exam_days:
        lines.append(
            f"Prochain examen: {context.next_exam_subject} dans {context.next_exam_days} jours."
        )
    if context.today_sessions_count:
        lines.append(f"Aujourd'hui: {context.today_sessions_count} sessions prévues.")
    return "\n".join(lines)


def fallback_message(message_type: str) -> str:
    messages = FALLBACK_MESSAGES.get(message_type) or FALLBACK_MESSAGES["motivation"]
    return random.choice(messages)


def generate_coach_message(
    context: CoachContext,
    message_type: str,
    client: LLMClient,
) -> str:
    """Generate a short coach message, falling back to a canned one on error."""
    try:
        content = client.simple_chat(
            system_prompt=get_prompt("coach/system"),
            user_message=build_coach_prompt(context, message_type),
            temperature=0.8,
            max_tokens=100,
        )
    except LLMError as e:
        logger.warning("coach.fallback", message_type=message_type, error=str(e))
        return fallback_message(message_type)
    except Exception:
        logger.exception("coach.unexpected_error", message_type=message_type)
        return UNEXPECTED_ERROR_MESSAGE

    return content.strip() or EMPTY_REPLY_MESSAGE
