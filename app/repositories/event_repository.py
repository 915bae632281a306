"""
app/repositories/event_repository.py

SQLAlchemy-backed event store.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.events import Event
from app.repositories.interfaces import BatchWriteError, EventFilters
from db.models.event import EventRecord

logger = logging.getLogger(__name__)

_WRITABLE_FIELDS = (
    "title",
    "description",
    "date",
    "end_date",
    "venue_name",
    "venue_address",
    "venue_capacity",
    "city",
    "country",
    "category",
    "genre",
    "price",
    "price_max",
    "currency",
    "image_url",
    "ticket_url",
    "source",
    "external_id",
)


class SQLAlchemyEventRepository:
    """
    Event store over the `events` table. The caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_all(self) -> list[Event]:
        rows = self._session.scalars(select(EventRecord).order_by(EventRecord.date.asc()))
        return [_to_domain(row) for row in rows]

    def find_by_id(self, event_id: str) -> Event | None:
        row = self._session.get(EventRecord, event_id)
        return _to_domain(row) if row is not None else None

    def find_by_filters(self, filters: EventFilters) -> list[Event]:
        statement = select(EventRecord)
        if filters.city:
            statement = statement.where(func.lower(EventRecord.city) == filters.city.strip().lower())
        if filters.country:
            statement = statement.where(EventRecord.country == filters.country.strip().upper())
        if filters.category:
            statement = statement.where(EventRecord.category == filters.category)
        if filters.genre:
            statement = statement.where(EventRecord.genre == filters.genre)
        if filters.date_from is not None:
            statement = statement.where(EventRecord.date >= filters.date_from)
        if filters.date_to is not None:
            statement = statement.where(EventRecord.date <= filters.date_to)
        if filters.search:
            statement = statement.where(EventRecord.title.ilike(f"%{filters.search.strip()}%"))
        statement = statement.order_by(EventRecord.date.asc())
        if filters.limit is not None:
            statement = statement.limit(max(1, filters.limit))
        return [_to_domain(row) for row in self._session.scalars(statement)]

    def upsert_many(self, events: Sequence[Event]) -> int:
        """
        Insert or update each event inside its own savepoint.

        Matches an existing row by id, then by (source, external_id). Raises
        BatchWriteError listing the failed events after attempting all of them.
        """

        written = 0
        failures: list[tuple[Event, str]] = []
        for event in events:
            try:
                with self._session.begin_nested():
                    self._upsert_one(event)
                written += 1
            except SQLAlchemyError as exc:
                logger.warning("Event upsert failed id=%s source=%s error=%s", event.id, event.source, exc)
                failures.append((event, str(exc)))

        if failures:
            raise BatchWriteError(written, failures)
        return written

    def delete_by_id(self, event_id: str) -> bool:
        result = self._session.execute(delete(EventRecord).where(EventRecord.id == event_id))
        return bool(result.rowcount)

    def delete_all(self) -> int:
        result = self._session.execute(delete(EventRecord))
        return int(result.rowcount or 0)

    def count(self) -> int:
        return int(self._session.scalar(select(func.count()).select_from(EventRecord)) or 0)

    def _upsert_one(self, event: Event) -> None:
        row = self._session.get(EventRecord, event.id)
        if row is None and event.external_id:
            row = self._session.scalar(
                select(EventRecord).where(
                    EventRecord.source == event.source,
                    EventRecord.external_id == event.external_id,
                )
            )

        values = _to_values(event)
        if row is None:
            self._session.add(EventRecord(id=event.id, created_at=event.created_at or _now(), **values))
        else:
            for key, value in values.items():
                setattr(row, key, value)
        self._session.flush()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_values(event: Event) -> dict[str, Any]:
    values = {name: getattr(event, name) for name in _WRITABLE_FIELDS}
    values["updated_at"] = _now()
    return values


def _to_domain(row: EventRecord) -> Event:
    return Event(
        id=row.id,
        title=row.title,
        date=row.date,
        city=row.city,
        country=row.country,
        category=row.category,
        source=row.source,
        currency=row.currency,
        description=row.description,
        end_date=row.end_date,
        venue_name=row.venue_name,
        venue_address=row.venue_address,
        venue_capacity=row.venue_capacity,
        genre=row.genre,
        price=row.price,
        price_max=row.price_max,
        image_url=row.image_url,
        ticket_url=row.ticket_url,
        external_id=row.external_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
