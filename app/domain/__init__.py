"""
app/domain package marker.
"""

from app.domain.events import (
    DEFAULT_PREFERENCES,
    Event,
    EventCategory,
    GlobalPreferences,
    RawEvent,
    ValidationResult,
    VenueSize,
)
from app.domain.ingestion import IngestionError, OrchestratorResult, ProcessEventsResult, SourceResult

__all__ = [
    "DEFAULT_PREFERENCES",
    "Event",
    "EventCategory",
    "GlobalPreferences",
    "IngestionError",
    "OrchestratorResult",
    "ProcessEventsResult",
    "RawEvent",
    "SourceResult",
    "ValidationResult",
    "VenueSize",
]
