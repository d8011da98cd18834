"""AI study aids: quizzes, revision sheets (fiches) and flashcards.

Each kind forces the model to call a single function whose JSON schema is the
shape of the study aid; the parsed arguments are the result.
"""

from __future__ import annotations

import json
from typing import Any, Literal

import structlog

from skoo.llm.client import LLMClient, Message, parse_json_content
from skoo.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

StudyAidKind = Literal["quiz", "fiche", "flashcards"]

_QUIZ_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Titre du quiz"},
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": {
                        "type": "object",
                        "properties": {
                            "A": {"type": "string"},
                            "B": {"type": "string"},
                            "C": {"type": "string"},
                            "D": {"type": "string"},
                        },
                        "required": ["A", "B", "C", "D"],
                        "additionalProperties": False,
                    },
                    "correct_answer": {"type": "string", "enum": ["A", "B", "C", "D"]},
                    "explanation": {"type": "string"},
                },
                "required": ["question", "options", "correct_answer", "explanation"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["title", "questions"],
    "additionalProperties": False,
}

_FICHE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "key_points": {"type": "array", "items": {"type": "string"}},
        "definitions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "term": {"type": "string"},
                    "definition": {"type": "string"},
                },
                "required": ["term", "definition"],
                "additionalProperties": False,
            },
        },
        "summary": {"type": "string"},
    },
    "required": ["title", "key_points", "definitions", "summary"],
    "additionalProperties": False,
}

_FLASHCARDS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "cards": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "front": {"type": "string"},
                    "back": {"type": "string"},
                },
                "required": ["front", "back"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["title", "cards"],
    "additionalProperties": False,
}

# kind -> (function name, description, schema)
STUDY_AID_FUNCTIONS: dict[str, tuple[str, str, dict[str, Any]]] = {
    "quiz": ("generate_quiz", "Génère un quiz structuré", _QUIZ_SCHEMA),
    "fiche": ("generate_fiche", "Génère une fiche de révision structurée", _FICHE_SCHEMA),
    "flashcards": ("generate_flashcards", "Génère des flashcards de révision", _FLASHCARDS_SCHEMA),
}


class StudyToolError(Exception):
    """Error during study aid generation."""

    pass


def build_user_message(subject: str, content: str | None = None) -> str:
    message = f"Sujet : {subject}"
    if content:
        message += f"\n\nContenu fourni :\n{content}"
    return message


def generate_study_aid(
    kind: str,
    subject: str,
    client: LLMClient,
    content: str | None = None,
) -> dict[str, Any]:
    """Generate a quiz, fiche or flashcard set for a subject.

    Args:
        kind: "quiz", "fiche" or "flashcards"
        subject: Subject of the study aid
        client: LLM client
        content: Optional course content to base the aid on

    Returns:
        Structured study aid (arguments of the forced function call)

    Raises:
        StudyToolError: Unknown kind or unusable model output
        LLMError: Gateway failures
    """
    if kind not in STUDY_AID_FUNCTIONS:
        raise StudyToolError(f"Unknown type: {kind}")

    function_name, description, schema = STUDY_AID_FUNCTIONS[kind]
    tools = [
        {
            "type": "function",
            "function": {"name": function_name, "description": description, "parameters": schema},
        }
    ]

    messages = [
        Message(role="system", content=get_prompt(f"study_tools/{kind}")),
        Message(role="user", content=build_user_message(subject, content)),
    ]

    response = client.chat(
        messages,
        tools=tools,
        tool_choice={"type": "function", "function": {"name": function_name}},
    )

    if response.tool_calls:
        try:
            result = json.loads(response.tool_calls[0].arguments)
        except json.JSONDecodeError as e:
            raise StudyToolError(f"Invalid {kind} arguments from model: {e}") from e
    else:
        # Fallback: the model answered in plain content
        result = parse_json_content(response.content) if response.content else None

    if not isinstance(result, dict):
        raise StudyToolError(f"Model returned no usable {kind}")

    logger.info("study_tools.generated", kind=kind, subject=subject)
    return result
