"""
tests/test_preferences_service.py

Pytest unit tests for PreferencesService.

Coverage
--------
- TTL cache: hit within TTL, reload after expiry, invalidation
- Defaults initialized when the store is empty
- update_preferences() flags a rescrape and invalidates the cache
- mark_rescraping_done() clears the flag
- should_accept_event(): countries, cities, genres, categories, venue sizes
- calculate_venue_size() boundaries
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Any

import pytest

from app.config import PreferencesCacheSettings
from app.domain.events import DEFAULT_PREFERENCES, Event, GlobalPreferences, VenueSize
from app.services.preferences_service import PreferencesService


class InMemoryPreferencesStore:
    def __init__(self, preferences: GlobalPreferences | None = None) -> None:
        self.preferences = preferences
        self.reads = 0

    def get(self) -> GlobalPreferences | None:
        self.reads += 1
        return self.preferences

    def initialize(self) -> GlobalPreferences:
        self.preferences = DEFAULT_PREFERENCES
        return self.preferences

    def update(self, **changes: Any) -> GlobalPreferences:
        base = self.preferences or DEFAULT_PREFERENCES
        self.preferences = replace(base, **changes)
        return self.preferences

    def needs_rescraping(self) -> bool:
        return bool(self.preferences and self.preferences.needs_rescraping)

    def mark_rescraping_done(self) -> None:
        if self.preferences is not None:
            self.preferences = replace(self.preferences, needs_rescraping=False)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryPreferencesStore:
    return InMemoryPreferencesStore(DEFAULT_PREFERENCES)


@pytest.fixture()
def service(store: InMemoryPreferencesStore, clock: FakeClock) -> PreferencesService:
    return PreferencesService(store=store, cache_settings=PreferencesCacheSettings(ttl_seconds=60.0), clock=clock)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_cached_within_ttl(self, service: PreferencesService, store: InMemoryPreferencesStore, clock: FakeClock) -> None:
        service.get_active_preferences()
        clock.now += 59
        service.get_active_preferences()

        assert store.reads == 1

    def test_reloaded_after_ttl(self, service: PreferencesService, store: InMemoryPreferencesStore, clock: FakeClock) -> None:
        service.get_active_preferences()
        clock.now += 61
        service.get_active_preferences()

        assert store.reads == 2

    def test_defaults_initialized_when_missing(self, clock: FakeClock) -> None:
        store = InMemoryPreferencesStore()
        service = PreferencesService(store=store, cache_settings=PreferencesCacheSettings(), clock=clock)

        assert service.get_active_preferences() == DEFAULT_PREFERENCES
        assert store.preferences == DEFAULT_PREFERENCES

    def test_update_invalidates_and_flags_rescrape(
        self, service: PreferencesService, store: InMemoryPreferencesStore
    ) -> None:
        service.get_active_preferences()

        service.update_preferences(allowed_cities=("Rosario",))

        active = service.get_active_preferences()
        assert active.allowed_cities == ("Rosario",)
        assert service.needs_rescraping() is True
        assert store.reads == 2

    def test_mark_rescraping_done(self, service: PreferencesService) -> None:
        service.update_preferences(allowed_countries=("AR", "UY"))

        service.mark_rescraping_done()

        assert service.needs_rescraping() is False
        assert service.get_active_preferences().needs_rescraping is False


# ---------------------------------------------------------------------------
# Event acceptance
# ---------------------------------------------------------------------------


class TestShouldAcceptEvent:
    def test_default_preferences_accept_caba_concert(
        self, service: PreferencesService, make_event: Callable[..., Event]
    ) -> None:
        assert service.should_accept_event(make_event(city="caba")).valid

    @pytest.mark.parametrize(
        ("overrides", "field", "reason"),
        [
            ({"country": "UY"}, "country", "Country not allowed: UY"),
            ({"city": "Rosario"}, "city", "City not allowed: Rosario"),
            ({"category": "Opera"}, "category", "Category not allowed: Opera"),
        ],
    )
    def test_default_rejections(
        self,
        service: PreferencesService,
        make_event: Callable[..., Event],
        overrides: dict[str, Any],
        field: str,
        reason: str,
    ) -> None:
        result = service.should_accept_event(make_event(**overrides))

        assert result.valid is False
        assert result.field == field
        assert result.reason == reason

    def test_genres(self, service: PreferencesService, make_event: Callable[..., Event]) -> None:
        prefs = GlobalPreferences(allowed_genres=("Rock", "Metal"), blocked_genres=("Metal",))

        assert service.should_accept_event(make_event(genre="Rock"), prefs).valid
        assert service.should_accept_event(make_event(genre="Metal"), prefs).reason == "Genre blocked: Metal"
        assert service.should_accept_event(make_event(genre="Cumbia"), prefs).reason == "Genre not allowed: Cumbia"
        assert service.should_accept_event(make_event(genre=None), prefs).valid

    def test_venue_size(self, service: PreferencesService, make_event: Callable[..., Event]) -> None:
        prefs = GlobalPreferences(allowed_venue_sizes=("small",))

        assert service.should_accept_event(make_event(venue_capacity=300), prefs).valid
        result = service.should_accept_event(make_event(venue_capacity=60000), prefs)
        assert result.field == "venue_capacity"
        assert result.reason == "Venue size not allowed: large (60000 people)"
        assert service.should_accept_event(make_event(venue_capacity=None), prefs).valid

    def test_empty_preferences_accept_everything(
        self, service: PreferencesService, make_event: Callable[..., Event]
    ) -> None:
        event = make_event(country="JP", city="Tokyo", category="Other", genre="J-Pop", venue_capacity=50000)

        assert service.should_accept_event(event, GlobalPreferences()).valid

    @pytest.mark.parametrize(
        ("capacity", "expected"),
        [(0, VenueSize.SMALL), (499, VenueSize.SMALL), (500, VenueSize.MEDIUM), (1999, VenueSize.MEDIUM), (2000, VenueSize.LARGE)],
    )
    def test_calculate_venue_size(self, capacity: int, expected: VenueSize) -> None:
        assert PreferencesService.calculate_venue_size(capacity) is expected
