"""
tests/test_event_ingestion_pipeline.py

Pytest unit tests for EventIngestionPipeline with in-memory stores.

Coverage
--------
- to_canonical_event: defaults, temporary ids, text dates, missing date
- Accept / reject counters and error reasons
- Blacklist filtering, and fail-open when the lookup errors
- Duplicates against stored events: update keeps the stored id, keep leaves store untouched
- Duplicates within one batch
- Distinct events sharing one external id are both persisted
- Candidate lookup window
- Partial and total persistence failures adjust counters
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from app.config import BusinessRulesConfig
from app.domain.events import Event, EventCategory, RawEvent
from app.repositories.interfaces import BatchWriteError, EventFilters
from app.services.event_ingestion_service import (
    CanonicalizationError,
    EventIngestionPipeline,
    to_canonical_event,
)
from app.services.event_rules import EventRules

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
SHOW_DATE = NOW + timedelta(days=30)


def raw(
    title: str = "Metallica World Tour 2025",
    *,
    source: str = "livepass",
    external_id: str | None = "https://livepass.test/e/metallica",
    **overrides: object,
) -> RawEvent:
    values: dict[str, object] = {
        "title": title,
        "date": SHOW_DATE,
        "source_name": source,
        "venue": "Estadio River Plate",
        "city": "Buenos Aires",
        "country": "AR",
        "category": "Concierto",
        "external_id": external_id,
    }
    values.update(overrides)
    return RawEvent(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryEventStore:
    def __init__(self, events: Sequence[Event] = (), *, fail_ids: set[str] | None = None, broken: bool = False) -> None:
        self.events: dict[str, Event] = {event.id: event for event in events}
        self.fail_ids = fail_ids or set()
        self.broken = broken
        self.filters: list[EventFilters] = []

    def find_by_filters(self, filters: EventFilters) -> list[Event]:
        self.filters.append(filters)
        return [
            event
            for event in self.events.values()
            if (filters.date_from is None or event.date >= filters.date_from)
            and (filters.date_to is None or event.date <= filters.date_to)
        ]

    def upsert_many(self, events: Sequence[Event]) -> int:
        if self.broken:
            raise RuntimeError("connection reset")
        failures: list[tuple[Event, str]] = []
        written = 0
        for event in events:
            if event.id in self.fail_ids:
                failures.append((event, "value too long"))
                continue
            self.events[event.id] = event
            written += 1
        if failures:
            raise BatchWriteError(written, failures)
        return written


class InMemoryBlacklist:
    def __init__(self, entries: set[tuple[str, str]] | None = None, *, broken: bool = False) -> None:
        self.entries = entries or set()
        self.broken = broken

    def is_blacklisted(self, source: str, external_id: str) -> bool:
        if self.broken:
            raise RuntimeError("relation event_blacklist does not exist")
        return (source, external_id) in self.entries


def make_pipeline(store: InMemoryEventStore, blacklist: InMemoryBlacklist | None = None) -> EventIngestionPipeline:
    rules = EventRules(config=BusinessRulesConfig(), now=lambda: NOW)
    return EventIngestionPipeline(rules=rules, event_store=store, blacklist=blacklist)  # type: ignore[arg-type]


@pytest.fixture()
def stored() -> Event:
    return Event(
        id="stored-1",
        title="Metallica World Tour 2025",
        date=SHOW_DATE + timedelta(minutes=30),
        city="Buenos Aires",
        country="AR",
        category=EventCategory.CONCERT.value,
        source="livepass",
        venue_name="Estadio River Plate",
        description="Gira mundial",
        created_at=NOW - timedelta(days=3),
    )


# ---------------------------------------------------------------------------
# Canonicalization
# ---------------------------------------------------------------------------


class TestToCanonicalEvent:
    def test_defaults(self) -> None:
        event = to_canonical_event(
            RawEvent(title=None, date=SHOW_DATE, source_name="", external_url="https://x.test/e"),
            now=NOW,
        )

        assert event.id.startswith("temp-")
        assert event.title == ""
        assert event.source == "unknown"
        assert event.category == EventCategory.OTHER.value
        assert event.currency == "ARS"
        assert event.ticket_url == "https://x.test/e"
        assert event.created_at == NOW
        assert event.updated_at == NOW

    def test_text_dates(self) -> None:
        assert to_canonical_event(raw(date="2030-02-01T21:00:00Z")).date == datetime(2030, 2, 1, 21, tzinfo=timezone.utc)
        assert to_canonical_event(raw(date="01/02/2030 21:00")).date == datetime(2030, 2, 1, 21, 0)

    @pytest.mark.parametrize("value", [None, "", "Próximamente"])
    def test_missing_date(self, value: object) -> None:
        with pytest.raises(CanonicalizationError, match="Missing required field: date"):
            to_canonical_event(raw(date=value))


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------


class TestProcessEvents:
    def test_new_events_accepted_and_normalized(self) -> None:
        store = InMemoryEventStore()

        result = make_pipeline(store).process_events(
            [raw(), raw("Los Piojos", external_id="https://livepass.test/e/piojos", country="Argentina")]
        )

        assert (result.accepted, result.rejected, result.duplicates, result.updated) == (2, 0, 0, 0)
        assert result.errors == []
        piojos = store.events["https://livepass.test/e/piojos"]
        assert piojos.country == "AR"
        assert piojos.category == "Concert"

    def test_rejections_are_reported(self) -> None:
        store = InMemoryEventStore()

        result = make_pipeline(store).process_events(
            [
                raw("Sin fecha", date=None),
                raw("Lejos", country="Narnia"),
                raw("Viejo", date=NOW - timedelta(days=10)),
            ]
        )

        assert result.accepted == 0
        assert result.rejected == 3
        assert [error.reason for error in result.errors] == [
            "Missing required field: date",
            "Unknown country: Narnia",
            "Event too far in the past (10 days ago)",
        ]
        assert store.events == {}

    def test_blacklisted_event_rejected(self) -> None:
        store = InMemoryEventStore()
        blacklist = InMemoryBlacklist({("livepass", "https://livepass.test/e/metallica")})

        result = make_pipeline(store, blacklist).process_events([raw()])

        assert result.rejected == 1
        assert result.errors[0].reason == "Event is blacklisted"
        assert store.events == {}

    def test_blacklist_failure_fails_open(self) -> None:
        store = InMemoryEventStore()

        result = make_pipeline(store, InMemoryBlacklist(broken=True)).process_events([raw()])

        assert result.accepted == 1
        assert result.errors == []

    def test_candidate_lookup_window(self) -> None:
        store = InMemoryEventStore()

        make_pipeline(store).process_events([raw()])

        assert store.filters == [EventFilters(date_from=SHOW_DATE - timedelta(hours=24), date_to=SHOW_DATE + timedelta(hours=24))]


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------


class TestDuplicates:
    def test_more_reliable_duplicate_updates_stored_event(self, stored: Event) -> None:
        store = InMemoryEventStore([stored])

        result = make_pipeline(store).process_events(
            [raw("Metallica - World Tour 2025", source="ticketmaster", external_id="tm-123")]
        )

        assert (result.accepted, result.duplicates, result.updated) == (0, 1, 1)
        assert list(store.events) == ["stored-1"]
        updated = store.events["stored-1"]
        assert updated.source == "ticketmaster"
        assert updated.created_at == stored.created_at

    def test_duplicate_without_news_is_skipped(self, stored: Event) -> None:
        store = InMemoryEventStore([stored])

        result = make_pipeline(store).process_events([raw(source="allaccess", external_id="aa-1")])

        assert (result.accepted, result.duplicates, result.updated) == (0, 1, 0)
        assert store.events == {"stored-1": stored}

    def test_duplicates_within_one_batch(self) -> None:
        store = InMemoryEventStore()

        result = make_pipeline(store).process_events(
            [raw(), raw("Metallica World Tour 2025", source="ticketmaster", external_id="tm-123")]
        )

        assert (result.accepted, result.duplicates, result.updated) == (1, 1, 0)
        assert list(store.events) == ["https://livepass.test/e/metallica"]
        assert store.events["https://livepass.test/e/metallica"].source == "ticketmaster"

    def test_shared_external_id_keeps_both_events(self) -> None:
        store = InMemoryEventStore()
        link = "https://livepass.test/e/hamlet"
        later = SHOW_DATE + timedelta(days=3)

        result = make_pipeline(store).process_events(
            [
                raw("Hamlet", external_id=link, category="Teatro"),
                raw("Hamlet", external_id=link, category="Teatro", date=later),
            ]
        )

        assert (result.accepted, result.duplicates, result.errors) == (2, 0, [])
        assert len(store.events) == 2
        assert store.events[link].date == SHOW_DATE
        assert store.events[f"{link}@{later:%Y%m%dT%H%M}"].date == later
        assert {event.external_id for event in store.events.values()} == {link}


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


class TestPersistenceFailures:
    def test_partial_batch_failure(self, stored: Event) -> None:
        store = InMemoryEventStore([stored], fail_ids={"https://livepass.test/e/piojos", "stored-1"})

        result = make_pipeline(store).process_events(
            [
                raw("Los Piojos", external_id="https://livepass.test/e/piojos", date=SHOW_DATE + timedelta(days=5)),
                raw("Soda Stereo", external_id="https://livepass.test/e/soda", date=SHOW_DATE + timedelta(days=6)),
                raw("Metallica World Tour 2025", source="ticketmaster", external_id="tm-1"),
            ]
        )

        assert (result.accepted, result.duplicates, result.updated) == (1, 1, 0)
        assert sorted(error.reason for error in result.errors) == ["Persistence failed: value too long"] * 2
        assert "https://livepass.test/e/soda" in store.events

    def test_whole_batch_failure(self) -> None:
        store = InMemoryEventStore(broken=True)

        result = make_pipeline(store).process_events([raw(), replace(raw(), title="Los Piojos", external_id="p-1")])

        assert result.accepted == 0
        assert [error.reason for error in result.errors] == ["Persistence failed: connection reset"] * 2
