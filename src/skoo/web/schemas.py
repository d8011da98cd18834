"""Pydantic schemas for the Web API.

Request and response models for the copilot, study tools, coach,
subscription and calendar endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# COPILOT SCHEMAS
# =============================================================================


class ChatMessage(BaseModel):
    """One prior turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class CopilotRequest(BaseModel):
    """Request body for the copilot."""

    messages: list[ChatMessage] = Field(..., min_length=1)
    user_context: dict[str, Any] = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    """Audit entry of an executed tool."""

    name: str
    input: dict[str, Any]
    result: dict[str, Any]


class CopilotResponse(BaseModel):
    """Final copilot answer with every executed tool call."""

    response: str
    tool_calls: list[ToolCallResponse] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body of every failed request."""

    error: str
    details: str | None = None


# OpenAPI documentation of the app-level gateway error handlers
GATEWAY_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    429: {"model": ErrorResponse, "description": "Too many requests"},
    402: {"model": ErrorResponse, "description": "AI credits exhausted"},
    500: {"model": ErrorResponse, "description": "AI gateway or server error"},
}


# =============================================================================
# STUDY TOOL SCHEMAS
# =============================================================================


class StudyToolRequest(BaseModel):
    """Request body for quiz / fiche / flashcards generation."""

    type: str
    subject: str = Field(..., min_length=1)
    content: str | None = None


class StudyToolResponse(BaseModel):
    """Generated study aid."""

    result: dict[str, Any]


# =============================================================================
# COACH SCHEMAS
# =============================================================================


class CoachContextPayload(BaseModel):
    """What the client knows about the student."""

    firstName: str | None = None
    totalHoursThisWeek: float | None = None
    completedHoursThisWeek: float | None = None
    nextExamSubject: str | None = None
    nextExamDays: int | None = None
    todaySessionsCount: int | None = None
    streakDays: int | None = None


class CoachRequest(BaseModel):
    """Request body for a coach message."""

    context: CoachContextPayload = Field(default_factory=CoachContextPayload)
    messageType: Literal["motivation", "greeting", "reminder", "celebration", "tip"] = "motivation"


class CoachResponse(BaseModel):
    message: str


# =============================================================================
# SUBSCRIPTION SCHEMAS
# =============================================================================


class TrialInfoResponse(BaseModel):
    is_trialing: bool
    trial_expired: bool
    selected_tier: str | None = None
    trial_started_at: str | None = None
    trial_ends_at: str | None = None
    days_remaining: int | None = None


class SubscriptionResponse(BaseModel):
    """Effective access of the authenticated user."""

    is_subscribed: bool
    tier: str | None = None
    source: str
    trial: TrialInfoResponse


# =============================================================================
# CALENDAR SCHEMAS
# =============================================================================


class CalendarEventResponse(BaseModel):
    title: str
    start_time: str
    end_time: str
    location: str | None = None
    is_all_day: bool = False
    subject_name: str | None = None


class CalendarImportResponse(BaseModel):
    """Result of an ICS import."""

    imported: int
    events: list[CalendarEventResponse]


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
