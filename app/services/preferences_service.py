"""
app/services/preferences_service.py

Catalog-wide acceptance preferences with an in-memory TTL cache.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from app.config import PreferencesCacheSettings, get_preferences_cache_settings
from app.domain.events import Event, GlobalPreferences, ValidationResult, VenueSize
from app.repositories.interfaces import PreferencesStore

logger = logging.getLogger(__name__)

SMALL_VENUE_MAX_CAPACITY = 500
MEDIUM_VENUE_MAX_CAPACITY = 2000


class PreferencesService:
    """
    Reads preferences through a TTL cache and checks events against them.

    Updates and rescrape acknowledgements invalidate the cache.
    """

    def __init__(
        self,
        *,
        store: PreferencesStore,
        cache_settings: PreferencesCacheSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl_seconds = (cache_settings or get_preferences_cache_settings()).ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: GlobalPreferences | None = None
        self._expires_at = 0.0

    def get_active_preferences(self) -> GlobalPreferences:
        with self._lock:
            if self._cached is not None and self._clock() < self._expires_at:
                return self._cached

            preferences = self._store.get()
            if preferences is None:
                logger.info("Global preferences missing; initializing defaults")
                preferences = self._store.initialize()

            self._cached = preferences
            self._expires_at = self._clock() + self._ttl_seconds
            return preferences

    def update_preferences(self, **changes: Any) -> GlobalPreferences:
        updated = self._store.update(**{**changes, "needs_rescraping": True})
        self.invalidate_cache()
        logger.info("Global preferences updated fields=%s", sorted(changes))
        return updated

    def should_accept_event(
        self,
        event: Event,
        preferences: GlobalPreferences | None = None,
    ) -> ValidationResult:
        prefs = preferences or self.get_active_preferences()

        if prefs.allowed_countries and event.country not in prefs.allowed_countries:
            return ValidationResult.reject(f"Country not allowed: {event.country}", "country")

        if prefs.allowed_cities and event.city:
            city = event.city.lower()
            if not any(allowed.lower() == city for allowed in prefs.allowed_cities):
                return ValidationResult.reject(f"City not allowed: {event.city}", "city")

        if event.genre:
            if event.genre in prefs.blocked_genres:
                return ValidationResult.reject(f"Genre blocked: {event.genre}", "genre")
            if prefs.allowed_genres and event.genre not in prefs.allowed_genres:
                return ValidationResult.reject(f"Genre not allowed: {event.genre}", "genre")

        if prefs.allowed_categories and event.category and event.category not in prefs.allowed_categories:
            return ValidationResult.reject(f"Category not allowed: {event.category}", "category")

        if prefs.allowed_venue_sizes and event.venue_capacity is not None:
            venue_size = self.calculate_venue_size(event.venue_capacity)
            if venue_size.value not in prefs.allowed_venue_sizes:
                return ValidationResult.reject(
                    f"Venue size not allowed: {venue_size.value} ({event.venue_capacity} people)",
                    "venue_capacity",
                )

        return ValidationResult.ok()

    @staticmethod
    def calculate_venue_size(capacity: int) -> VenueSize:
        if capacity < SMALL_VENUE_MAX_CAPACITY:
            return VenueSize.SMALL
        if capacity < MEDIUM_VENUE_MAX_CAPACITY:
            return VenueSize.MEDIUM
        return VenueSize.LARGE

    def needs_rescraping(self) -> bool:
        return self._store.needs_rescraping()

    def mark_rescraping_done(self) -> None:
        self._store.mark_rescraping_done()
        self.invalidate_cache()

    def invalidate_cache(self) -> None:
        with self._lock:
            self._cached = None
            self._expires_at = 0.0
