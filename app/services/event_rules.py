"""
app/services/event_rules.py

Validation and normalization rules for canonical events.
"""

from __future__ import annotations

import math
import unicodedata
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from app.config import BusinessRulesConfig
from app.domain.events import Event, EventCategory, GlobalPreferences, ValidationResult
from app.services import deduplication

# Accent-free lowercase keys.
COUNTRY_CODES: dict[str, str] = {
    "argentina": "AR",
    "uruguay": "UY",
    "chile": "CL",
    "brasil": "BR",
    "brazil": "BR",
    "paraguay": "PY",
    "bolivia": "BO",
    "peru": "PE",
    "colombia": "CO",
    "ecuador": "EC",
    "venezuela": "VE",
    "mexico": "MX",
    "espana": "ES",
    "spain": "ES",
    "estados unidos": "US",
    "united states": "US",
    "usa": "US",
}

CATEGORY_SYNONYMS: dict[str, EventCategory] = {
    "concert": EventCategory.CONCERT,
    "concierto": EventCategory.CONCERT,
    "show": EventCategory.CONCERT,
    "recital": EventCategory.CONCERT,
    "music": EventCategory.CONCERT,
    "musica": EventCategory.CONCERT,
    "festival": EventCategory.FESTIVAL,
    "fest": EventCategory.FESTIVAL,
    "theater": EventCategory.THEATER,
    "theatre": EventCategory.THEATER,
    "teatro": EventCategory.THEATER,
    "standup": EventCategory.STANDUP,
    "stand-up": EventCategory.STANDUP,
    "stand up": EventCategory.STANDUP,
    "comedy": EventCategory.STANDUP,
    "comedia": EventCategory.STANDUP,
    "opera": EventCategory.OPERA,
    "ballet": EventCategory.BALLET,
    "danza": EventCategory.BALLET,
    "dance": EventCategory.BALLET,
    "other": EventCategory.OTHER,
    "otro": EventCategory.OTHER,
}

# Attribute names for required-field keys that differ on the canonical event.
_FIELD_ALIASES = {"venue": "venue_name", "image": "image_url", "link": "ticket_url"}

SECONDS_PER_DAY = 24 * 60 * 60


class PreferenceFilter(Protocol):
    def should_accept_event(
        self,
        event: Event,
        preferences: GlobalPreferences | None = None,
    ) -> ValidationResult:
        ...


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).strip().lower()


def resolve_country_code(value: str | None) -> str | None:
    """
    ISO-2 code for a country name or code; None when it cannot be resolved.
    """

    if not value or not value.strip():
        return None
    stripped = value.strip()
    if len(stripped) == 2 and stripped.isalpha():
        return stripped.upper()
    return COUNTRY_CODES.get(_fold(stripped))


def normalize_category(value: str | None) -> str:
    if not value:
        return EventCategory.OTHER.value
    category = CATEGORY_SYNONYMS.get(" ".join(_fold(value).split()))
    return (category or EventCategory.OTHER).value


def normalize_city(value: str | None) -> str:
    if not value:
        return ""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split())


class EventRules:
    """
    Acceptance checks and canonical normalization for events entering the catalog.
    """

    def __init__(
        self,
        *,
        config: BusinessRulesConfig,
        preferences: PreferenceFilter | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._preferences = preferences
        self._now = now or (lambda: datetime.now(timezone.utc))

    def is_acceptable(self, event: Event) -> ValidationResult:
        for check in (self._check_required_fields, self._check_date, self._check_location):
            result = check(event)
            if not result.valid:
                return result
        if self._preferences is None:
            return ValidationResult.ok()
        # Preferences hold canonical values, so compare against the normalized form.
        return self._preferences.should_accept_event(self.normalize(event))

    def normalize(self, event: Event) -> Event:
        description = event.description.strip() if event.description else None
        return replace(
            event,
            title=(event.title or "").strip(),
            description=description or None,
            city=normalize_city(event.city),
            country=self._normalize_country(event.country),
            category=normalize_category(event.category),
        )

    def is_duplicate(self, incoming: Event, existing: Event) -> bool:
        return deduplication.is_duplicate(incoming, existing, self._config.duplicates)

    def should_update(self, incoming: Event, existing: Event) -> bool:
        return deduplication.should_update(incoming, existing)

    def _check_required_fields(self, event: Event) -> ValidationResult:
        content = self._config.content
        for field_name in content.required_fields:
            value = getattr(event, _FIELD_ALIASES.get(field_name, field_name), None)
            if value is None or (isinstance(value, str) and not value.strip()):
                return ValidationResult.reject(f"Missing required field: {field_name}", field_name)

        if event.title and len(event.title.strip()) < content.min_title_length:
            return ValidationResult.reject(
                f"Title too short (minimum {content.min_title_length} characters)",
                "title",
            )
        return ValidationResult.ok()

    def _check_date(self, event: Event) -> ValidationResult:
        rules = self._config.date
        now = self._now()
        event_date = event.date
        if (event_date.tzinfo is None) != (now.tzinfo is None):
            event_date = event_date if event_date.tzinfo else event_date.replace(tzinfo=timezone.utc)
            now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
        days_ahead = math.floor((event_date - now).total_seconds() / SECONDS_PER_DAY)

        if days_ahead < rules.min_days_in_future:
            return ValidationResult.reject(f"Event too far in the past ({abs(days_ahead)} days ago)", "date")
        if days_ahead > rules.max_days_in_future:
            return ValidationResult.reject(f"Event too far in the future ({days_ahead} days ahead)", "date")
        if not rules.allow_past_events and days_ahead < 0:
            return ValidationResult.reject("Past events are not allowed", "date")
        return ValidationResult.ok()

    def _check_location(self, event: Event) -> ValidationResult:
        if not self._config.location.required_location:
            return ValidationResult.ok()
        if not event.city or not event.city.strip():
            return ValidationResult.reject("City is required", "city")
        if not event.country or not event.country.strip():
            return ValidationResult.reject("Country is required", "country")
        if resolve_country_code(event.country) is None:
            return ValidationResult.reject(f"Unknown country: {event.country}", "country")
        return ValidationResult.ok()

    @staticmethod
    def _normalize_country(value: str | None) -> str:
        if not value:
            return ""
        return resolve_country_code(value) or ""
