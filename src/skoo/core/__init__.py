"""Core business logic.

Modules:
- copilot: chat loop with function calling over the student's planner
- study_tools: quiz / fiche / flashcards generation
- coach: short spoken coach messages
- subscription: trial window and tier resolution
- calendar_import: ICS parsing and subject extraction
- reminders: session and exam reminder notifications
"""

__all__ = [
    "copilot",
    "study_tools",
    "coach",
    "subscription",
    "calendar_import",
    "reminders",
]
