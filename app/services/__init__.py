"""
app/services package marker.
"""

from app.services.event_ingestion_service import EventIngestionPipeline
from app.services.event_rules import EventRules
from app.services.preferences_service import PreferencesService

__all__ = [
    "EventIngestionPipeline",
    "EventRules",
    "PreferencesService",
]
