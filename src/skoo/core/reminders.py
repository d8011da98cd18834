"""Reminder notifications for upcoming revision sessions and exams.

Both jobs are idempotent: running them twice in the same window does not
duplicate notifications.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import structlog

from skoo.db import repository

logger = structlog.get_logger(__name__)

SESSION_REMINDER_LEAD = timedelta(minutes=15)
EXAM_REMINDER_DAYS = (7, 3, 1)


@dataclass
class ReminderReport:
    """Outcome of a reminder run."""

    checked: int = 0
    sent: int = 0


def send_session_reminders(now: datetime | None = None) -> ReminderReport:
    """Notify users whose planned session starts in 15 minutes.

    Covers sessions starting during the minute that begins 15 minutes
    from ``now``; meant to run once a minute.
    """
    now = now or datetime.now()
    target = (now + SESSION_REMINDER_LEAD).replace(second=0, microsecond=0)
    time_from = target.strftime("%H:%M")
    time_to = (target + timedelta(minutes=1)).strftime("%H:%M")
    if time_to < time_from:
        # window crosses midnight
        time_to = "24:00"

    sessions = repository.list_planned_sessions_starting(
        target.date().isoformat(), time_from, time_to
    )
    report = ReminderReport(checked=len(sessions))

    for session in sessions:
        subject_name = session.get("subject_name") or "Révision"

        if repository.notification_exists(
            session["user_id"], "session_reminder", {"session_id": session["id"]}
        ):
            logger.debug("reminders.session_already_notified", session_id=session["id"])
            continue

        repository.insert_notification(
            user_id=session["user_id"],
            notification_type="session_reminder",
            title="Session dans 15 minutes",
            message=f"Ta session de {subject_name} commence bientôt !",
            link="/app",
            metadata={"session_id": session["id"], "subject_name": subject_name},
        )
        report.sent += 1

    logger.info("reminders.sessions", checked=report.checked, sent=report.sent)
    return report


def exam_label(days: int) -> str:
    return "demain" if days == 1 else f"dans {days} jours"


def exam_title(days: int) -> str:
    if days == 1:
        return "⚠️ Examen demain !"
    return f"📚 Examen {exam_label(days)}"


def exam_message(subject_name: str, exam_type: str | None, days: int) -> str:
    suffix = ""
    if exam_type:
        suffix = " (CC)" if exam_type == "Contrôle continu" else f" ({exam_type})"
    return f"{subject_name}{suffix} est {exam_label(days)}. Courage !"


def send_exam_reminders(today: date | None = None) -> ReminderReport:
    """Notify users of exams in 7, 3 and 1 days (once per subject, offset and day)."""
    # notification created_at is stored in UTC
    today = today or datetime.now(timezone.utc).date()
    report = ReminderReport()

    for days in EXAM_REMINDER_DAYS:
        exam_date = (today + timedelta(days=days)).isoformat()
        subjects = repository.list_subjects_with_exam_on(exam_date)
        report.checked += len(subjects)

        for subject in subjects:
            if repository.notification_exists(
                subject["user_id"],
                "exam_reminder",
                {"subject_id": subject["id"], "days_before": days},
                created_since=today.isoformat(),
            ):
                logger.debug(
                    "reminders.exam_already_notified",
                    subject_id=subject["id"],
                    days_before=days,
                )
                continue

            repository.insert_notification(
                user_id=subject["user_id"],
                notification_type="exam_reminder",
                title=exam_title(days),
                message=exam_message(subject["name"], subject.get("exam_type"), days),
                link="/subjects",
                metadata={
                    "subject_id": subject["id"],
                    "subject_name": subject["name"],
                    "days_before": days,
                    "exam_date": exam_date,
                },
            )
            report.sent += 1

    logger.info("reminders.exams", checked=report.checked, sent=report.sent)
    return report
