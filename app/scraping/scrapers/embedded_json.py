"""
Scraper for sites that ship their event grid as JSON inside a script tag.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any

from app.domain.events import RawEvent
from app.scraping.base import ExtractionError, ScraperBase, derive_external_id
from app.scraping.config.models import EmbeddedJsonConfig
from app.scraping.logging_utils import log_event
from app.scraping.parsing.embedded_json import (
    collect_event_cards,
    extract_embedded_payload,
    title_from_link,
)
from app.scraping.transforms import clean_whitespace, parse_spanish_date
from app.scraping.types import FetchOptions

logger = logging.getLogger(__name__)

_DATE_CARD_KEYS = ("description", "line1", "line2")


class EmbeddedJsonScraper(ScraperBase):
    """
    Maps embedded grid cards to raw events.
    """

    @property
    def embedded(self) -> EmbeddedJsonConfig:
        return self.config.embedded_json or EmbeddedJsonConfig()

    def scrape_events(self, options: FetchOptions) -> list[RawEvent]:
        url = options.url or self.config.listing.url
        markup = self.fetch_document(url)
        try:
            payload = extract_embedded_payload(markup, script_pattern=self.embedded.script_pattern)
        except ValueError as exc:
            raise ExtractionError(f"{self.name}: {exc}") from exc

        cards = collect_event_cards(payload, link_keywords=self.embedded.link_keywords)
        log_event(logger, logging.INFO, "embedded_cards_found", source=self.name, cards=len(cards))

        events: list[RawEvent] = []
        for card in cards:
            try:
                event = self.card_to_raw_event(card)
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "card_mapping_failed",
                    source=self.name,
                    link=card.get("link"),
                    error=str(exc),
                )
                if not self.config.error_policy.skip_failed_events:
                    raise ExtractionError(f"{self.name}: card could not be mapped: {exc}") from exc
                continue
            if event is not None:
                events.append(event)
        return events

    def card_to_raw_event(self, card: dict[str, Any], *, today: date | None = None) -> RawEvent | None:
        link = card.get("link")
        if not isinstance(link, str) or not link.strip():
            log_event(logger, logging.WARNING, "card_without_link", source=self.name)
            return None

        external_url = self.absolute_url(link.strip())
        title = clean_whitespace(str(card.get("title") or "")) or title_from_link(link)

        event_date = self._card_date(card, today=today)
        if event_date is None:
            reference = today or date.today()
            event_date = datetime(reference.year, 12, 31)
            log_event(
                logger,
                logging.WARNING,
                "card_date_placeholder",
                source=self.name,
                title=title,
            )

        image = card.get("imgUrl")
        content = card.get("content")
        return RawEvent(
            title=title,
            date=self.localize(event_date),
            source_name=self.name,
            venue=self.infer_venue(link),
            city=self.config.default_value("city"),
            country=self.config.default_value("country"),
            category=self.config.default_value("category"),
            description=clean_whitespace(content) if isinstance(content, str) else None,
            image_url=self.absolute_url(image) if isinstance(image, str) else None,
            external_url=external_url,
            external_id=derive_external_id(link=external_url, title=title, date=event_date),
        )

    def infer_venue(self, link: str) -> str | None:
        for venue_pattern in self.embedded.venue_patterns:
            if re.search(venue_pattern.pattern, link, flags=re.IGNORECASE):
                return venue_pattern.venue
        return self.config.default_value("venue")

    @staticmethod
    def _card_date(card: dict[str, Any], *, today: date | None) -> datetime | None:
        for key in _DATE_CARD_KEYS:
            value = card.get(key)
            if isinstance(value, str) and value.strip():
                parsed = parse_spanish_date(value, today=today)
                if parsed is not None:
                    return parsed
        return None
