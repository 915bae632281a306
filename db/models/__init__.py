"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.event import EventRecord
from db.models.event_blacklist import EventBlacklistEntry
from db.models.global_preferences import GlobalPreferencesRecord

__all__ = [
    "EventBlacklistEntry",
    "EventRecord",
    "GlobalPreferencesRecord",
]
