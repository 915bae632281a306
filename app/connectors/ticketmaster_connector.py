"""
app/connectors/ticketmaster_connector.py

Ticketmaster Discovery API v2 event source.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

from app.config import ExternalHTTPSettings, TicketmasterSettings
from app.connectors.base import BaseConnector
from app.domain.events import EventCategory, RawEvent
from app.scraping.base import ExtractionError
from app.scraping.types import FetchOptions

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"


class TicketmasterConnector(BaseConnector):
    """
    Fetches one page of upcoming events, sorted by date, for the configured country.
    """

    name = "ticketmaster"

    def __init__(
        self,
        *,
        settings: TicketmasterSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
        **kwargs: Any,
    ) -> None:
        if not settings.api_key:
            raise ValueError("Ticketmaster API key is required (TICKETMASTER_API_KEY).")
        super().__init__(http_settings=http_settings, session=session, **kwargs)
        self._ticketmaster = settings

    def describe_status_error(self, status_code: int) -> str:
        if status_code == 401:
            return "Ticketmaster API: Invalid API key"
        if status_code == 429:
            return "Ticketmaster API: Rate limit exceeded"
        return f"Ticketmaster API error: HTTP {status_code}"

    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        params: dict[str, Any] = {
            "apikey": self._ticketmaster.api_key,
            "countryCode": self._ticketmaster.country_code,
            "classificationName": self._ticketmaster.classification_name,
            "size": self._ticketmaster.page_size,
            "sort": "date,asc",
        }
        if self._ticketmaster.city:
            params["city"] = self._ticketmaster.city

        payload = self._get_json(self._ticketmaster.base_url, params=params)
        embedded = payload.get("_embedded") if isinstance(payload, dict) else None
        api_events = embedded.get("events") if isinstance(embedded, dict) else None
        if not isinstance(api_events, list) or not api_events:
            logger.warning("Ticketmaster returned no events country=%s", self._ticketmaster.country_code)
            return []

        events: list[RawEvent] = []
        for item in api_events:
            try:
                event = self.to_raw_event(item)
            except Exception as exc:
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("Ticketmaster event mapping failed id=%s error=%s", item_id, exc)
                if not self._ticketmaster.skip_failed_events:
                    raise ExtractionError(f"{self.name}: event {item_id} could not be mapped: {exc}") from exc
                continue
            if event is not None:
                events.append(event)
        logger.info("Ticketmaster fetched=%s mapped=%s", len(api_events), len(events))
        return events

    def to_raw_event(self, item: Any) -> RawEvent | None:
        if not isinstance(item, dict):
            return None
        event_date = parse_start_date(item.get("dates"), default_timezone=self._ticketmaster.timezone)
        if event_date is None:
            logger.warning("Ticketmaster event skipped without date id=%s", item.get("id"))
            return None

        venue = _first(_nested(item, "_embedded", "venues"))
        classification = _first(item.get("classifications"))
        price_range = _first(item.get("priceRanges"))
        image = _first(item.get("images"))
        segment = _name(classification.get("segment"))
        genre = _name(classification.get("genre"))

        return RawEvent(
            title=item.get("name"),
            date=event_date,
            source_name=self.name,
            venue=venue.get("name"),
            address=_nested(venue, "address", "line1"),
            city=_nested(venue, "city", "name"),
            country=_nested(venue, "country", "countryCode"),
            category=map_category(segment, genre).value,
            genre=genre,
            price=_number(price_range.get("min")),
            price_max=_number(price_range.get("max")),
            currency=price_range.get("currency") or DEFAULT_CURRENCY,
            image_url=image.get("url"),
            external_url=item.get("url"),
            external_id=str(item["id"]) if item.get("id") is not None else None,
            extras={
                "segment": segment,
                "sub_genre": _name(classification.get("subGenre")),
                "state": _nested(venue, "state", "name"),
                "latitude": _nested(venue, "location", "latitude"),
                "longitude": _nested(venue, "location", "longitude"),
            },
        )


def parse_start_date(dates: Any, *, default_timezone: str | None = None) -> datetime | None:
    """
    `dates.start`: dateTime wins, then localDate + localTime, then localDate at midnight.

    Local values are placed in `dates.timezone`, falling back to `default_timezone`;
    they stay naive when neither names a known zone.
    """

    start = dates.get("start") if isinstance(dates, dict) else None
    if not isinstance(start, dict):
        return None
    date_time = _text(start.get("dateTime"))
    local_date = _text(start.get("localDate"))
    local_time = _text(start.get("localTime"))
    try:
        if date_time:
            return datetime.fromisoformat(date_time.replace("Z", "+00:00"))
        if not local_date:
            return None
        local = datetime.fromisoformat(f"{local_date}T{local_time or '00:00:00'}")
    except ValueError:
        return None

    zone = _zone(dates.get("timezone")) or _zone(default_timezone)
    return local.replace(tzinfo=zone) if zone is not None and local.tzinfo is None else local


def _zone(name: Any) -> ZoneInfo | None:
    if not isinstance(name, str) or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("Unknown timezone name=%s", name)
        return None


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def map_category(segment: str | None, genre: str | None) -> EventCategory:
    segment_lower = (segment or "").lower()
    genre_lower = (genre or "").lower()

    if "music" in segment_lower:
        return EventCategory.FESTIVAL if "festival" in genre_lower else EventCategory.CONCERT
    if "arts" in segment_lower:
        if "theatre" in genre_lower or "theater" in genre_lower:
            return EventCategory.THEATER
        if "opera" in genre_lower:
            return EventCategory.OPERA
        if "ballet" in genre_lower or "dance" in genre_lower:
            return EventCategory.BALLET
        if "comedy" in genre_lower or "stand-up" in genre_lower:
            return EventCategory.STANDUP
        return EventCategory.OTHER
    if "film" in segment_lower or "sports" in segment_lower:
        return EventCategory.OTHER
    if "comedy" in genre_lower or "stand-up" in genre_lower:
        return EventCategory.STANDUP
    if "festival" in genre_lower:
        return EventCategory.FESTIVAL
    return EventCategory.OTHER


def _first(value: Any) -> dict[str, Any]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


def _nested(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _name(value: Any) -> str | None:
    name = value.get("name") if isinstance(value, dict) else None
    return name if isinstance(name, str) and name else None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
