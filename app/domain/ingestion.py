"""
app/domain/ingestion.py

Run-scoped result models for source fetching and event ingestion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.domain.events import Event, RawEvent


@dataclass(frozen=True)
class IngestionError:
    """
    One event that could not be ingested, with the reason.
    """

    event: RawEvent | Event | None
    reason: str

    @property
    def title(self) -> str | None:
        return self.event.title if self.event is not None else None


@dataclass
class ProcessEventsResult:
    """
    Counters produced by one ingestion pipeline pass.

    `duplicates` counts every matched candidate; `updated` is the subset
    that replaced the stored event.
    """

    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    updated: int = 0
    errors: list[IngestionError] = field(default_factory=list)


@dataclass(frozen=True)
class SourceResult:
    name: str
    success: bool
    events_count: int
    duration_seconds: float
    error: str | None = None


@dataclass(frozen=True)
class OrchestratorResult:
    """
    Aggregate outcome of one `fetch_all()` run.
    """

    sources: list[SourceResult]
    total_events: int
    total_processed: int
    total_duplicates: int
    total_updated: int
    total_rejected: int
    total_errors: int
    errors: list[IngestionError]
    duration_seconds: float
    timestamp: datetime

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [source for source in self.sources if not source.success]
