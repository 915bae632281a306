"""
app/services/event_ingestion_service.py

Blacklist filter -> canonicalize -> rules -> dedup -> batch persist.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from app.domain.events import Event, EventCategory, RawEvent
from app.domain.ingestion import IngestionError, ProcessEventsResult
from app.repositories.interfaces import BatchWriteError, BlacklistStore, EventFilters, EventStore
from app.scraping.transforms import parse_spanish_datetime
from app.services.event_rules import EventRules

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"
DEFAULT_CURRENCY = "ARS"


class CanonicalizationError(ValueError):
    """
    Raised when a raw event cannot be turned into a canonical event.
    """


def resolve_event_date(value: datetime | str | None) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return parse_spanish_datetime(value)


def to_canonical_event(raw: RawEvent, *, now: datetime | None = None) -> Event:
    """
    Build a canonical event from a raw one. City and country may still be empty here.
    """

    event_date = resolve_event_date(raw.date)
    if event_date is None:
        raise CanonicalizationError("Missing required field: date")

    timestamp = now or datetime.now(timezone.utc)
    return Event(
        id=raw.external_id or f"temp-{uuid.uuid4().hex}",
        title=raw.title or "",
        date=event_date,
        city=raw.city or "",
        country=raw.country or "",
        category=raw.category or EventCategory.OTHER.value,
        source=raw.source_name or UNKNOWN_SOURCE,
        currency=raw.currency or DEFAULT_CURRENCY,
        description=raw.description,
        end_date=raw.end_date,
        venue_name=raw.venue,
        venue_address=raw.address,
        venue_capacity=raw.venue_capacity,
        genre=raw.genre,
        price=raw.price,
        price_max=raw.price_max,
        image_url=raw.image_url,
        ticket_url=raw.external_url,
        external_id=raw.external_id,
        created_at=timestamp,
        updated_at=timestamp,
    )


class EventIngestionPipeline:
    """
    Turns one batch of raw events into inserts and updates against the event store.

    Per-event problems are counted and listed in the result; nothing is raised
    for a single bad event.
    """

    def __init__(
        self,
        *,
        rules: EventRules,
        event_store: EventStore,
        blacklist: BlacklistStore | None = None,
        match_window_hours: float = 24.0,
    ) -> None:
        self._rules = rules
        self._events = event_store
        self._blacklist = blacklist
        self._match_window = timedelta(hours=match_window_hours)

    def process_events(self, raw_events: Sequence[RawEvent]) -> ProcessEventsResult:
        result = ProcessEventsResult()
        pending: dict[str, Event] = {}
        update_ids: set[str] = set()

        for raw in raw_events:
            source = raw.source_name or UNKNOWN_SOURCE
            if self._is_blacklisted(source, raw.external_id):
                result.rejected += 1
                result.errors.append(IngestionError(event=raw, reason="Event is blacklisted"))
                continue

            try:
                event = to_canonical_event(raw)
            except CanonicalizationError as exc:
                result.rejected += 1
                result.errors.append(IngestionError(event=raw, reason=str(exc)))
                continue

            try:
                validation = self._rules.is_acceptable(event)
                if not validation.valid:
                    result.rejected += 1
                    result.errors.append(IngestionError(event=raw, reason=validation.reason or "Validation failed"))
                    continue

                normalized = self._rules.normalize(event)
                duplicate = self._find_duplicate(normalized, pending)
            except Exception as exc:
                logger.exception("Event processing failed source=%s title=%s", source, raw.title)
                result.errors.append(IngestionError(event=raw, reason=str(exc) or type(exc).__name__))
                continue

            if duplicate is None:
                if normalized.id in pending:
                    normalized = self._with_distinct_id(normalized, pending)
                pending[normalized.id] = normalized
                result.accepted += 1
                continue

            result.duplicates += 1
            if self._rules.should_update(normalized, duplicate):
                merged = replace(normalized, id=duplicate.id, created_at=duplicate.created_at)
                already_queued = duplicate.id in pending
                pending[merged.id] = merged
                if not already_queued:
                    update_ids.add(merged.id)
                    result.updated += 1

        self._persist(list(pending.values()), update_ids, result)
        logger.info(
            "Ingestion batch processed total=%s accepted=%s rejected=%s duplicates=%s updated=%s errors=%s",
            len(raw_events),
            result.accepted,
            result.rejected,
            result.duplicates,
            result.updated,
            len(result.errors),
        )
        return result

    def _is_blacklisted(self, source: str, external_id: str | None) -> bool:
        if self._blacklist is None or not external_id:
            return False
        try:
            return self._blacklist.is_blacklisted(source, external_id)
        except Exception as exc:
            logger.warning(
                "Blacklist lookup failed; treating as not blacklisted source=%s external_id=%s error=%s",
                source,
                external_id,
                exc,
            )
            return False

    @staticmethod
    def _with_distinct_id(event: Event, pending: dict[str, Event]) -> Event:
        """
        Re-key an event whose id is already queued for a different, non-duplicate event.
        """

        base_id = f"{event.id}@{event.date:%Y%m%dT%H%M}"
        new_id = base_id
        suffix = 2
        while new_id in pending:
            new_id = f"{base_id}-{suffix}"
            suffix += 1
        logger.warning(
            "External id shared by distinct events; re-keyed source=%s id=%s new_id=%s",
            event.source,
            event.id,
            new_id,
        )
        return replace(event, id=new_id)

    def _find_duplicate(self, event: Event, pending: dict[str, Event]) -> Event | None:
        for queued in pending.values():
            if self._rules.is_duplicate(event, queued):
                return queued

        candidates = self._events.find_by_filters(
            EventFilters(date_from=event.date - self._match_window, date_to=event.date + self._match_window)
        )
        for candidate in candidates:
            if self._rules.is_duplicate(event, candidate):
                return candidate
        return None

    def _persist(self, events: list[Event], update_ids: set[str], result: ProcessEventsResult) -> None:
        if not events:
            return
        try:
            self._events.upsert_many(events)
        except BatchWriteError as exc:
            for event, reason in exc.failures:
                self._record_write_failure(event, reason, update_ids, result)
        except Exception as exc:
            logger.exception("Event batch write failed events=%s", len(events))
            for event in events:
                self._record_write_failure(event, str(exc), update_ids, result)

    @staticmethod
    def _record_write_failure(
        event: Event,
        reason: str,
        update_ids: set[str],
        result: ProcessEventsResult,
    ) -> None:
        if event.id in update_ids:
            result.updated -= 1
        else:
            result.accepted -= 1
        result.errors.append(IngestionError(event=event, reason=f"Persistence failed: {reason}"))
