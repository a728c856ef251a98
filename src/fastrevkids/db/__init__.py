"""Database module for SQLite persistence.

Provides:
- Database connection management and schema initialization
- Exercise catalog repository
- Student progress and attempt history
- Revision schedules with optimistic versioning
- YAML seed import
"""

from fastrevkids.db.database import get_db, init_db
from fastrevkids.db.exercises_repository import SqliteExerciseCatalog
from fastrevkids.db.progress_repository import SqliteProgressStore
from fastrevkids.db.schedules_repository import SqliteScheduleStore

__all__ = [
    "get_db",
    "init_db",
    "SqliteExerciseCatalog",
    "SqliteProgressStore",
    "SqliteScheduleStore",
]
