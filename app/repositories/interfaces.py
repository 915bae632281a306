"""
app/repositories/interfaces.py

Persistence contracts consumed by the ingestion pipeline and preferences service.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from app.domain.events import Event, GlobalPreferences


class BatchWriteError(RuntimeError):
    """
    Raised by `upsert_many` when some events could not be written.

    Events written before and after a failure stay persisted.
    """

    def __init__(self, written: int, failures: list[tuple[Event, str]]) -> None:
        super().__init__(f"{len(failures)} event(s) failed to persist; {written} written.")
        self.written = written
        self.failures = failures


@dataclass(frozen=True)
class EventFilters:
    city: str | None = None
    country: str | None = None
    category: str | None = None
    genre: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    limit: int | None = None


class EventStore(Protocol):
    def find_all(self) -> list[Event]:
        ...

    def find_by_id(self, event_id: str) -> Event | None:
        ...

    def find_by_filters(self, filters: EventFilters) -> list[Event]:
        ...

    def upsert_many(self, events: Sequence[Event]) -> int:
        ...

    def delete_by_id(self, event_id: str) -> bool:
        ...

    def delete_all(self) -> int:
        ...

    def count(self) -> int:
        ...


class BlacklistStore(Protocol):
    def is_blacklisted(self, source: str, external_id: str) -> bool:
        ...

    def add_to_blacklist(self, source: str, external_id: str, reason: str | None = None) -> None:
        ...

    def clear_all(self) -> int:
        ...


class PreferencesStore(Protocol):
    def get(self) -> GlobalPreferences | None:
        ...

    def initialize(self) -> GlobalPreferences:
        ...

    def update(self, **changes: Any) -> GlobalPreferences:
        ...

    def needs_rescraping(self) -> bool:
        ...

    def mark_rescraping_done(self) -> None:
        ...
