"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for API connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class TicketmasterSettings:
    """
    Ticketmaster Discovery API connector settings.
    """

    enabled: bool = False
    api_key: str | None = None
    base_url: str = "https://app.ticketmaster.com/discovery/v2/events.json"
    country_code: str = "AR"
    city: str | None = None
    classification_name: str = "Music"
    page_size: int = 100
    timezone: str = "America/Argentina/Buenos_Aires"
    skip_failed_events: bool = True


@dataclass(frozen=True)
class DateRules:
    min_days_in_future: int = -1
    max_days_in_future: int = 365
    allow_past_events: bool = True


@dataclass(frozen=True)
class LocationRules:
    required_location: bool = True


@dataclass(frozen=True)
class ContentRules:
    min_title_length: int = 3
    required_fields: tuple[str, ...] = ("title", "date")


@dataclass(frozen=True)
class DuplicateRules:
    fuzzy_match_threshold: float = 0.85
    date_tolerance_hours: float = 24.0
    venue_match_threshold: float = 0.8


@dataclass(frozen=True)
class BusinessRulesConfig:
    """
    Tunable thresholds for event validation and duplicate detection.
    """

    date: DateRules = field(default_factory=DateRules)
    location: LocationRules = field(default_factory=LocationRules)
    content: ContentRules = field(default_factory=ContentRules)
    duplicates: DuplicateRules = field(default_factory=DuplicateRules)


@dataclass(frozen=True)
class PreferencesCacheSettings:
    ttl_seconds: float = 300.0


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_ticketmaster_settings() -> TicketmasterSettings:
    """
    Return Ticketmaster connector settings from environment variables.
    """

    return TicketmasterSettings(
        enabled=_get_bool_env("TICKETMASTER_ENABLED", False),
        api_key=_get_optional_str_env("TICKETMASTER_API_KEY"),
        base_url=_get_str_env(
            "TICKETMASTER_BASE_URL",
            "https://app.ticketmaster.com/discovery/v2/events.json",
        ),
        country_code=_get_str_env("TICKETMASTER_COUNTRY_CODE", "AR").upper(),
        city=_get_optional_str_env("TICKETMASTER_CITY"),
        classification_name=_get_str_env("TICKETMASTER_CLASSIFICATION", "Music"),
        page_size=min(200, max(1, _get_int_env("TICKETMASTER_PAGE_SIZE", 100))),
        timezone=_get_str_env("TICKETMASTER_TIMEZONE", "America/Argentina/Buenos_Aires"),
        skip_failed_events=_get_bool_env("TICKETMASTER_SKIP_FAILED_EVENTS", True),
    )


@lru_cache(maxsize=1)
def get_business_rules_config() -> BusinessRulesConfig:
    """
    Return cached business rules with environment overrides.
    """

    return BusinessRulesConfig(
        date=DateRules(
            min_days_in_future=_get_int_env("RULES_MIN_DAYS_IN_FUTURE", -1),
            max_days_in_future=max(0, _get_int_env("RULES_MAX_DAYS_IN_FUTURE", 365)),
            allow_past_events=_get_bool_env("RULES_ALLOW_PAST_EVENTS", True),
        ),
        location=LocationRules(
            required_location=_get_bool_env("RULES_REQUIRED_LOCATION", True),
        ),
        content=ContentRules(
            min_title_length=max(1, _get_int_env("RULES_MIN_TITLE_LENGTH", 3)),
            required_fields=_get_csv_env("RULES_REQUIRED_FIELDS", ("title", "date")),
        ),
        duplicates=DuplicateRules(
            fuzzy_match_threshold=min(1.0, max(0.0, _get_float_env("RULES_FUZZY_MATCH_THRESHOLD", 0.85))),
            date_tolerance_hours=max(0.0, _get_float_env("RULES_DATE_TOLERANCE_HOURS", 24.0)),
            venue_match_threshold=min(1.0, max(0.0, _get_float_env("RULES_VENUE_MATCH_THRESHOLD", 0.8))),
        ),
    )


@lru_cache(maxsize=1)
def get_preferences_cache_settings() -> PreferencesCacheSettings:
    return PreferencesCacheSettings(
        ttl_seconds=max(0.0, _get_float_env("PREFERENCES_CACHE_TTL_SECONDS", 300.0)),
    )
