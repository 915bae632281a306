"""
tests/test_scrape_service.py

Pytest unit tests for ScrapeService wiring, with storage and HTTP replaced by fakes.

Coverage
--------
- A full successful run commits, closes the browser and acknowledges a pending rescrape
- A run limited to named sources leaves the rescrape flag alone
- Unknown source names raise ValueError, roll back and still close the browser
- available_sources() lists configured sites plus enabled API sources
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

import app.services.scrape_service as scrape_service_module
from app.config import TicketmasterSettings
from app.domain.events import DEFAULT_PREFERENCES, Event
from app.repositories.interfaces import EventFilters
from app.scraping.config import ScrapingSettings
from app.services.scrape_service import ScrapeService
from tests.fakes import FakeSession

SHOW_DATE = datetime.now(timezone.utc) + timedelta(days=20)

SITE = {
    "name": "demo",
    "base_url": "https://demo.test",
    "listing": {"url": "/eventos", "item_selector": "div.event"},
    "selectors": {"title": "h2", "date": "time@datetime", "link": "a@href"},
    "default_values": {"venue": "Niceto Club", "city": "Buenos Aires", "country": "AR", "category": "Concierto"},
    "transforms": {"link": "to_absolute_url"},
    "error_handling": {"retry": {"max_retries": 0}},
}

LISTING = (
    '<div class="event"><h2>Dillom</h2>'
    f'<time datetime="{SHOW_DATE.strftime("%Y-%m-%dT%H:%M:%S")}+00:00"></time>'
    '<a href="/e/dillom">Ver</a></div>'
)


class FakeDB:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class FakeBrowser:
    instances: list["FakeBrowser"] = []

    def __init__(self, *, headless: bool = True) -> None:
        self.closed = False
        FakeBrowser.instances.append(self)

    def render(self, url: str, **kwargs: Any) -> str:
        raise AssertionError("no rendered sources configured")

    def close(self) -> None:
        self.closed = True


class MemoryEvents:
    def __init__(self) -> None:
        self.events: dict[str, Event] = {}

    def find_by_filters(self, filters: EventFilters) -> list[Event]:
        return []

    def upsert_many(self, events: list[Event]) -> int:
        self.events.update({event.id: event for event in events})
        return len(events)


class MemoryBlacklist:
    def is_blacklisted(self, source: str, external_id: str) -> bool:
        return False


class MemoryPreferences:
    def __init__(self, needs_rescraping: bool) -> None:
        self.preferences = replace(DEFAULT_PREFERENCES, needs_rescraping=needs_rescraping)

    def get(self) -> Any:
        return self.preferences

    def needs_rescraping(self) -> bool:
        return self.preferences.needs_rescraping

    def mark_rescraping_done(self) -> None:
        self.preferences = replace(self.preferences, needs_rescraping=False)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def stores() -> dict[str, Any]:
    return {"events": MemoryEvents(), "preferences": MemoryPreferences(needs_rescraping=True)}


@pytest.fixture()
def service(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, stores: dict[str, Any]) -> ScrapeService:
    (tmp_path / "demo.json").write_text(json.dumps(SITE), encoding="utf-8")
    settings = ScrapingSettings(config_dir=str(tmp_path), page_delay_seconds=0, default_rate_limit_per_second=100)
    session = FakeSession({"https://demo.test/eventos": f"<html><body>{LISTING}</body></html>"})

    FakeBrowser.instances = []
    monkeypatch.setattr(scrape_service_module, "get_scraping_settings", lambda: settings)
    monkeypatch.setattr(scrape_service_module, "get_ticketmaster_settings", lambda: TicketmasterSettings(enabled=False))
    monkeypatch.setattr(scrape_service_module, "BrowserHandle", FakeBrowser)
    monkeypatch.setattr(scrape_service_module.requests, "Session", lambda: session)
    monkeypatch.setattr(scrape_service_module, "SQLAlchemyEventRepository", lambda db: stores["events"])
    monkeypatch.setattr(scrape_service_module, "SQLAlchemyBlacklistRepository", lambda db: MemoryBlacklist())
    monkeypatch.setattr(scrape_service_module, "SQLAlchemyPreferencesRepository", lambda db: stores["preferences"])
    return ScrapeService()


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


class TestRun:
    def test_full_run(self, service: ScrapeService, stores: dict[str, Any]) -> None:
        db = FakeDB()

        result = service.run(db=db)  # type: ignore[arg-type]

        assert [source.name for source in result.sources] == ["demo"]
        assert result.total_events == 1
        assert result.total_processed == 1
        assert list(stores["events"].events) == ["https://demo.test/e/dillom"]
        assert db.commits == 1
        assert FakeBrowser.instances[0].closed is True
        assert stores["preferences"].needs_rescraping() is False

    def test_named_sources_keep_rescrape_flag(self, service: ScrapeService, stores: dict[str, Any]) -> None:
        service.run(db=FakeDB(), source_names=["demo"])  # type: ignore[arg-type]

        assert stores["preferences"].needs_rescraping() is True

    def test_unknown_source(self, service: ScrapeService, stores: dict[str, Any]) -> None:
        db = FakeDB()

        with pytest.raises(ValueError, match="Unknown source 'nope'"):
            service.run(db=db, source_names=["nope"])  # type: ignore[arg-type]

        assert (db.commits, db.rollbacks) == (0, 1)
        assert FakeBrowser.instances[0].closed is True
        assert stores["events"].events == {}


class TestAvailableSources:
    def test_site_configs(self, service: ScrapeService) -> None:
        assert service.available_sources() == ["demo"]

    def test_ticketmaster_when_enabled(self, service: ScrapeService, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            scrape_service_module,
            "get_ticketmaster_settings",
            lambda: TicketmasterSettings(enabled=True, api_key="secret"),
        )

        assert service.available_sources() == ["demo", "ticketmaster"]
