"""SQLite database connection and schema management.

Provides connection management and schema initialization for the Skoo backend.
Ownership triggers enforce that a row referencing a subject or a deck can only
be written by the user who owns that subject or deck.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/skoo.db")

# Current database (module-level, set by init_db)
_db_path: Path | None = None

OWNERSHIP_ERROR = "row-level security: subject does not belong to user"
DECK_OWNERSHIP_ERROR = "row-level security: deck does not belong to user"


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/skoo.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Return the path of the active database."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success, rolls back on any exception.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM subjects").fetchall()
    """
    db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            first_name TEXT,
            email TEXT,
            api_token TEXT UNIQUE,
            study_level TEXT,
            study_domain TEXT,
            exam_period TEXT,
            weekly_revision_hours REAL DEFAULT 10,
            selected_tier TEXT CHECK(selected_tier IN ('student', 'major')),
            trial_started_at TEXT,
            lifetime_tier TEXT CHECK(lifetime_tier IN ('student', 'major')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS subjects (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            coefficient REAL,
            exam_date TEXT,
            exam_type TEXT,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'archived')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS revision_sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            notes TEXT,
            status TEXT NOT NULL DEFAULT 'planned' CHECK(status IN ('planned', 'completed', 'skipped')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            subject_id TEXT REFERENCES subjects(id) ON DELETE SET NULL,
            priority TEXT NOT NULL DEFAULT 'medium' CHECK(priority IN ('low', 'medium', 'high')),
            due_date TEXT,
            status TEXT NOT NULL DEFAULT 'todo' CHECK(status IN ('todo', 'in_progress', 'done')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS flashcard_decks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            subject_id TEXT REFERENCES subjects(id) ON DELETE SET NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS flashcards (
            id TEXT PRIMARY KEY,
            deck_id TEXT NOT NULL REFERENCES flashcard_decks(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            front TEXT NOT NULL,
            back TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS calendar_events (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            location TEXT,
            is_all_day INTEGER NOT NULL DEFAULT 0,
            subject_name TEXT,
            calendar_name TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            link TEXT,
            metadata TEXT NOT NULL DEFAULT '{{}}',
            is_read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS school_members (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            school_id TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1
        );

        -- Ownership checks (row-level scoping enforced by the store)
        CREATE TRIGGER IF NOT EXISTS revision_sessions_subject_owner_ins
        BEFORE INSERT ON revision_sessions
        WHEN (SELECT user_id FROM subjects WHERE id = NEW.subject_id) IS NOT NEW.user_id
        BEGIN
            SELECT RAISE(ABORT, '{OWNERSHIP_ERROR}');
        END;

        CREATE TRIGGER IF NOT EXISTS revision_sessions_subject_owner_upd
        BEFORE UPDATE OF subject_id, user_id ON revision_sessions
        WHEN (SELECT user_id FROM subjects WHERE id = NEW.subject_id) IS NOT NEW.user_id
        BEGIN
            SELECT RAISE(ABORT, '{OWNERSHIP_ERROR}');
        END;

        CREATE TRIGGER IF NOT EXISTS tasks_subject_owner_ins
        BEFORE INSERT ON tasks
        WHEN NEW.subject_id IS NOT NULL
            AND (SELECT user_id FROM subjects WHERE id = NEW.subject_id) IS NOT NEW.user_id
        BEGIN
            SELECT RAISE(ABORT, '{OWNERSHIP_ERROR}');
        END;

        CREATE TRIGGER IF NOT EXISTS flashcard_decks_subject_owner_ins
        BEFORE INSERT ON flashcard_decks
        WHEN NEW.subject_id IS NOT NULL
            AND (SELECT user_id FROM subjects WHERE id = NEW.subject_id) IS NOT NEW.user_id
        BEGIN
            SELECT RAISE(ABORT, '{OWNERSHIP_ERROR}');
        END;

        CREATE TRIGGER IF NOT EXISTS flashcards_deck_owner_ins
        BEFORE INSERT ON flashcards
        WHEN (SELECT user_id FROM flashcard_decks WHERE id = NEW.deck_id) IS NOT NEW.user_id
        BEGIN
            SELECT RAISE(ABORT, '{DECK_OWNERSHIP_ERROR}');
        END;

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_subjects_user ON subjects(user_id);
        CREATE INDEX IF NOT EXISTS idx_sessions_user_date ON revision_sessions(user_id, date);
        CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id);
        CREATE INDEX IF NOT EXISTS idx_notifications_user_type ON notifications(user_id, type);
        CREATE INDEX IF NOT EXISTS idx_calendar_events_user ON calendar_events(user_id);
        """
    )
