"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization (with ownership triggers)
- Repository functions for the student planning tables
"""

from skoo.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
