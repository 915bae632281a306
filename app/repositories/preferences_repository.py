"""
app/repositories/preferences_repository.py

SQLAlchemy-backed store for the single global preferences row.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.domain.events import DEFAULT_PREFERENCES, GlobalPreferences
from db.models.global_preferences import SINGLETON_ID, GlobalPreferencesRecord

_LIST_FIELDS = (
    "allowed_countries",
    "allowed_cities",
    "allowed_genres",
    "blocked_genres",
    "allowed_categories",
    "allowed_venue_sizes",
)


class SQLAlchemyPreferencesRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self) -> GlobalPreferences | None:
        row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        return _to_domain(row) if row is not None else None

    def initialize(self) -> GlobalPreferences:
        row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        if row is None:
            row = GlobalPreferencesRecord(
                id=SINGLETON_ID,
                needs_rescraping=DEFAULT_PREFERENCES.needs_rescraping,
                **{name: list(getattr(DEFAULT_PREFERENCES, name)) for name in _LIST_FIELDS},
            )
            self._session.add(row)
            self._session.flush()
        return _to_domain(row)

    def update(self, **changes: Any) -> GlobalPreferences:
        unknown = set(changes) - {*_LIST_FIELDS, "needs_rescraping"}
        if unknown:
            raise ValueError(f"Unknown preference field(s): {', '.join(sorted(unknown))}.")

        row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        if row is None:
            self.initialize()
            row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        for name, value in changes.items():
            setattr(row, name, list(value) if name in _LIST_FIELDS else bool(value))
        self._session.flush()
        return _to_domain(row)

    def needs_rescraping(self) -> bool:
        row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        return bool(row.needs_rescraping) if row is not None else False

    def mark_rescraping_done(self) -> None:
        row = self._session.get(GlobalPreferencesRecord, SINGLETON_ID)
        if row is not None:
            row.needs_rescraping = False
            self._session.flush()


def _to_domain(row: GlobalPreferencesRecord) -> GlobalPreferences:
    return GlobalPreferences(
        needs_rescraping=bool(row.needs_rescraping),
        updated_at=row.updated_at,
        **{name: tuple(getattr(row, name) or ()) for name in _LIST_FIELDS},
    )
