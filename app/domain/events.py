"""
app/domain/events.py

Domain models for raw and canonical events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventCategory(str, Enum):
    """
    Closed set of canonical event categories.
    """

    CONCERT = "Concert"
    FESTIVAL = "Festival"
    THEATER = "Theater"
    STANDUP = "StandUp"
    OPERA = "Opera"
    BALLET = "Ballet"
    OTHER = "Other"


class VenueSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass
class RawEvent:
    """
    Loosely typed record as extracted from a source, before canonicalization.

    `date` may still be the source text when its transform failed.
    """

    title: str | None
    date: datetime | str | None
    source_name: str
    venue: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    category: str | None = None
    genre: str | None = None
    description: str | None = None
    price: float | None = None
    price_max: float | None = None
    currency: str | None = None
    image_url: str | None = None
    external_url: str | None = None
    external_id: str | None = None
    end_date: datetime | None = None
    venue_capacity: int | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Event:
    """
    Canonical event. `country` is ISO-2 and `category` an EventCategory value after normalization.
    """

    id: str
    title: str
    date: datetime
    city: str
    country: str
    category: str
    source: str
    currency: str = "ARS"
    description: str | None = None
    end_date: datetime | None = None
    venue_name: str | None = None
    venue_address: str | None = None
    venue_capacity: int | None = None
    genre: str | None = None
    price: float | None = None
    price_max: float | None = None
    image_url: str | None = None
    ticket_url: str | None = None
    external_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None
    field: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str, field: str | None = None) -> "ValidationResult":
        return cls(valid=False, reason=reason, field=field)


@dataclass(frozen=True)
class GlobalPreferences:
    """
    Catalog-wide acceptance preferences. Empty allow-lists accept everything.
    """

    allowed_countries: tuple[str, ...] = ()
    allowed_cities: tuple[str, ...] = ()
    allowed_genres: tuple[str, ...] = ()
    blocked_genres: tuple[str, ...] = ()
    allowed_categories: tuple[str, ...] = ()
    allowed_venue_sizes: tuple[str, ...] = ()
    needs_rescraping: bool = False
    updated_at: datetime | None = None


DEFAULT_PREFERENCES = GlobalPreferences(
    allowed_countries=("AR",),
    allowed_cities=("Buenos Aires", "Ciudad de Buenos Aires", "CABA"),
    allowed_genres=(),
    blocked_genres=(),
    allowed_categories=(
        EventCategory.CONCERT.value,
        EventCategory.FESTIVAL.value,
        EventCategory.THEATER.value,
    ),
    allowed_venue_sizes=(
        VenueSize.SMALL.value,
        VenueSize.MEDIUM.value,
        VenueSize.LARGE.value,
    ),
)
