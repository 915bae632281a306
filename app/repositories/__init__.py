"""
app/repositories package marker.
"""

from app.repositories.blacklist_repository import SQLAlchemyBlacklistRepository
from app.repositories.event_repository import SQLAlchemyEventRepository
from app.repositories.interfaces import (
    BatchWriteError,
    BlacklistStore,
    EventFilters,
    EventStore,
    PreferencesStore,
)
from app.repositories.preferences_repository import SQLAlchemyPreferencesRepository

__all__ = [
    "BatchWriteError",
    "BlacklistStore",
    "EventFilters",
    "EventStore",
    "PreferencesStore",
    "SQLAlchemyBlacklistRepository",
    "SQLAlchemyEventRepository",
    "SQLAlchemyPreferencesRepository",
]
