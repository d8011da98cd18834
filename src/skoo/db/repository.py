"""Repository functions for the student planning tables.

Every write takes the acting user's id and stamps it on the row; ownership of
referenced subjects and decks is checked by the schema triggers.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any

import structlog

from skoo.db.database import get_db

logger = structlog.get_logger(__name__)

SESSION_SELECT = """
    SELECT revision_sessions.*, subjects.name AS subject_name
    FROM revision_sessions
    LEFT JOIN subjects ON subjects.id = revision_sessions.subject_id
"""


def _new_id() -> str:
    return str(uuid.uuid4())


def _row_to_dict(row: sqlite3.Row | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return dict(row)


# =============================================================================
# PROFILES
# =============================================================================


def create_profile(
    first_name: str | None = None,
    email: str | None = None,
    api_token: str | None = None,
    user_id: str | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Insert a profile and return it.

    Extra keyword fields (study_level, selected_tier, trial_started_at, ...)
    are written as-is.
    """
    user_id = user_id or _new_id()
    columns = {"id": user_id, "first_name": first_name, "email": email, "api_token": api_token}
    columns.update(fields)

    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)

    with get_db() as conn:
        conn.execute(
            f"INSERT INTO profiles ({names}) VALUES ({placeholders})",
            tuple(columns.values()),
        )
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()

    logger.debug("profiles.inserted", user_id=user_id)
    return dict(row)


def get_profile(user_id: str) -> dict[str, Any] | None:
    """Get profile by user id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()
    return _row_to_dict(row)


def get_user_id_by_token(api_token: str) -> str | None:
    """Resolve a bearer token to the owning user id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT id FROM profiles WHERE api_token = ?", (api_token,)
        ).fetchone()
    return row["id"] if row else None


# =============================================================================
# SUBJECTS
# =============================================================================


def create_subject(
    user_id: str,
    name: str,
    coefficient: float | None = None,
    exam_date: str | None = None,
    exam_type: str | None = None,
    status: str = "active",
) -> dict[str, Any]:
    """Insert a subject for a user and return it."""
    subject_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO subjects (id, user_id, name, coefficient, exam_date, exam_type, status)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (subject_id, user_id, name, coefficient, exam_date, exam_type, status),
        )
        row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()

    logger.debug("subjects.inserted", subject_id=subject_id, user_id=user_id)
    return dict(row)


def list_subjects(user_id: str) -> list[dict[str, Any]]:
    """List a user's active subjects ordered by name."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM subjects WHERE user_id = ? AND status = 'active' ORDER BY name",
            (user_id,),
        ).fetchall()
    return [dict(r) for r in rows]


def list_subjects_with_exam_on(exam_date: str) -> list[dict[str, Any]]:
    """List active subjects (all users) with an exam on the given date."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM subjects WHERE exam_date = ? AND status = 'active'",
            (exam_date,),
        ).fetchall()
    return [dict(r) for r in rows]


# =============================================================================
# REVISION SESSIONS
# =============================================================================


def insert_revision_session(
    user_id: str,
    subject_id: str,
    date: str,
    start_time: str,
    end_time: str,
    notes: str | None = None,
    status: str = "planned",
) -> dict[str, Any]:
    """Insert a revision session and return it with its subject name.

    Raises:
        sqlite3.IntegrityError: If the subject is not owned by the user
            or a constraint fails
    """
    session_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO revision_sessions (
                id, user_id, subject_id, date, start_time, end_time, notes, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (session_id, user_id, subject_id, date, start_time, end_time, notes, status),
        )
        row = conn.execute(
            SESSION_SELECT + " WHERE revision_sessions.id = ?", (session_id,)
        ).fetchone()

    logger.debug("revision_sessions.inserted", session_id=session_id, user_id=user_id)
    return dict(row)


def update_session_status(user_id: str, session_id: str, status: str) -> int:
    """Update the status of one of the user's sessions.

    Returns:
        Number of rows updated (0 when the session is not the user's)
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE revision_sessions SET status = ? WHERE id = ? AND user_id = ?",
            (status, session_id, user_id),
        )
        updated = cursor.rowcount

    logger.debug(
        "revision_sessions.status_updated",
        session_id=session_id,
        status=status,
        updated=updated,
    )
    return updated


def list_revision_sessions(
    user_id: str,
    since: str | None = None,
    on_date: str | None = None,
) -> list[dict[str, Any]]:
    """List a user's sessions, optionally from a date (inclusive) or on one date."""
    query = SESSION_SELECT + " WHERE revision_sessions.user_id = ?"
    params: list[Any] = [user_id]
    if since is not None:
        query += " AND revision_sessions.date >= ?"
        params.append(since)
    if on_date is not None:
        query += " AND revision_sessions.date = ?"
        params.append(on_date)
    query += " ORDER BY revision_sessions.date, revision_sessions.start_time"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [dict(r) for r in rows]


def list_planned_sessions_starting(
    date: str, time_from: str, time_to: str
) -> list[dict[str, Any]]:
    """List planned sessions (all users) on a date starting in [time_from, time_to)."""
    with get_db() as conn:
        rows = conn.execute(
            SESSION_SELECT
            + """
            WHERE revision_sessions.date = ?
              AND revision_sessions.start_time >= ?
              AND revision_sessions.start_time < ?
              AND revision_sessions.status = 'planned'
            """,
            (date, time_from, time_to),
        ).fetchall()
    return [dict(r) for r in rows]


# =============================================================================
# TASKS
# =============================================================================


def insert_task(
    user_id: str,
    title: str,
    description: str | None = None,
    subject_id: str | None = None,
    priority: str = "medium",
    due_date: str | None = None,
    status: str = "todo",
) -> dict[str, Any]:
    """Insert a task and return it."""
    task_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO tasks (
                id, user_id, title, description, subject_id, priority, due_date, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (task_id, user_id, title, description, subject_id, priority, due_date, status),
        )
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()

    logger.debug("tasks.inserted", task_id=task_id, user_id=user_id)
    return dict(row)


def list_open_tasks(user_id: str) -> list[dict[str, Any]]:
    """List tasks that are not done."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM tasks
            WHERE user_id = ? AND status != 'done'
            ORDER BY due_date IS NULL, due_date, created_at
            """,
            (user_id,),
        ).fetchall()
    return [dict(r) for r in rows]


# =============================================================================
# FLASHCARDS
# =============================================================================


def insert_flashcard_deck(
    user_id: str,
    name: str,
    cards: list[dict[str, str]],
    subject_id: str | None = None,
) -> tuple[dict[str, Any], int]:
    """Insert a deck and its cards in a single transaction.

    Returns:
        Tuple of (deck row, number of cards inserted)
    """
    deck_id = _new_id()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO flashcard_decks (id, user_id, name, subject_id) VALUES (?, ?, ?, ?)",
            (deck_id, user_id, name, subject_id),
        )
        conn.executemany(
            """
            INSERT INTO flashcards (id, deck_id, user_id, front, back)
            VALUES (?, ?, ?, ?, ?)
            """,
            [(_new_id(), deck_id, user_id, c["front"], c["back"]) for c in cards],
        )
        deck = conn.execute(
            "SELECT * FROM flashcard_decks WHERE id = ?", (deck_id,)
        ).fetchone()

    logger.debug("flashcard_decks.inserted", deck_id=deck_id, cards=len(cards))
    return dict(deck), len(cards)


def count_flashcards(deck_id: str) -> int:
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM flashcards WHERE deck_id = ?", (deck_id,)
        ).fetchone()
    return row["n"]


# =============================================================================
# CALENDAR EVENTS
# =============================================================================


def insert_calendar_events(
    user_id: str,
    events: list[dict[str, Any]],
    calendar_name: str | None = None,
) -> int:
    """Insert imported calendar events in one transaction.

    Each event dict carries title, start_time, end_time (ISO strings),
    location, is_all_day and subject_name.
    """
    with get_db() as conn:
        conn.executemany(
            """
            INSERT INTO calendar_events (
                id, user_id, title, start_time, end_time, location,
                is_all_day, subject_name, calendar_name
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    _new_id(),
                    user_id,
                    e["title"],
                    e["start_time"],
                    e["end_time"],
                    e.get("location"),
                    int(bool(e.get("is_all_day"))),
                    e.get("subject_name"),
                    calendar_name,
                )
                for e in events
            ],
        )

    logger.debug("calendar_events.inserted", user_id=user_id, count=len(events))
    return len(events)


def list_calendar_events(user_id: str) -> list[dict[str, Any]]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM calendar_events WHERE user_id = ? ORDER BY start_time",
            (user_id,),
        ).fetchall()
    return [dict(r) for r in rows]


# =============================================================================
# NOTIFICATIONS
# =============================================================================


def notification_exists(
    user_id: str,
    notification_type: str,
    metadata: dict[str, Any],
    created_since: str | None = None,
) -> bool:
    """Check whether a notification with matching metadata values exists."""
    query = "SELECT 1 FROM notifications WHERE user_id = ? AND type = ?"
    params: list[Any] = [user_id, notification_type]
    for key, value in metadata.items():
        query += " AND json_extract(metadata, ?) = ?"
        params.extend([f"$.{key}", value])
    if created_since is not None:
        query += " AND created_at >= ?"
        params.append(created_since)

    with get_db() as conn:
        row = conn.execute(query + " LIMIT 1", params).fetchone()
    return row is not None


def insert_notification(
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    link: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> str:
    """Insert a notification and return its id."""
    notification_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO notifications (id, user_id, type, title, message, link, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification_id,
                user_id,
                notification_type,
                title,
                message,
                link,
                json.dumps(metadata or {}, ensure_ascii=False),
            ),
        )
    return notification_id


def list_notifications(user_id: str, notification_type: str | None = None) -> list[dict[str, Any]]:
    query = "SELECT * FROM notifications WHERE user_id = ?"
    params: list[Any] = [user_id]
    if notification_type is not None:
        query += " AND type = ?"
        params.append(notification_type)

    with get_db() as conn:
        rows = conn.execute(query + " ORDER BY created_at", params).fetchall()

    result = []
    for row in rows:
        data = dict(row)
        data["metadata"] = json.loads(data["metadata"])
        result.append(data)
    return result


# =============================================================================
# SCHOOL MEMBERSHIP
# =============================================================================


def add_school_member(user_id: str, school_id: str, is_active: bool = True) -> str:
    member_id = _new_id()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO school_members (id, user_id, school_id, is_active) VALUES (?, ?, ?, ?)",
            (member_id, user_id, school_id, int(is_active)),
        )
    return member_id


def has_active_school_membership(user_id: str) -> bool:
    """Check whether the user belongs to a school with an active membership."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM school_members WHERE user_id = ? AND is_active = 1 LIMIT 1",
            (user_id,),
        ).fetchone()
    return row is not None
