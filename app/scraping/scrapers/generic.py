"""
Config-driven HTML scraper: listing pages, optional detail pages, no per-site code.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

from bs4 import BeautifulSoup, Tag

from app.domain.events import RawEvent
from app.scraping.base import ExtractionError, ScraperBase, derive_external_id
from app.scraping.config.models import DetailPageConfig, PaginationType
from app.scraping.logging_utils import log_event
from app.scraping.parsing.html_parsers import HTMLParsingLayer
from app.scraping.transforms import (
    TransformKind,
    apply_transform,
    combine_date_and_time,
    extract_price,
    parse_spanish_datetime,
)
from app.scraping.types import FetchOptions

logger = logging.getLogger(__name__)

REQUIRED_ITEM_FIELDS = ("title", "date", "venue")

_STRUCTURED_TRANSFORMS: dict[str, TransformKind] = {
    "date": TransformKind.PARSE_SPANISH_DATETIME,
    "end_date": TransformKind.PARSE_SPANISH_DATETIME,
    "price": TransformKind.EXTRACT_PRICE,
    "price_max": TransformKind.EXTRACT_PRICE,
    "image": TransformKind.TO_ABSOLUTE_URL,
}


class GenericWebScraper(ScraperBase):
    """
    Extracts events from listing items using the config's compiled field resolvers.
    """

    def scrape_events(self, options: FetchOptions) -> list[RawEvent]:
        listing = self.config.listing
        pagination = listing.pagination
        start_url = options.url or listing.url
        max_pages = options.max_pages if options.max_pages is not None else pagination.max_pages
        max_pages = max(1, max_pages)

        events: list[RawEvent] = []
        for page in range(1, max_pages + 1):
            page_url = self.build_page_url(start_url, page)
            try:
                markup = self.fetch_document(page_url, wait_for_selector=self.config.wait_for_selector)
            except Exception as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "page_scrape_failed",
                    source=self.name,
                    page=page,
                    page_url=page_url,
                    error=str(exc),
                )
                if self.config.error_policy.skip_failed_pages:
                    continue
                raise

            soup = HTMLParsingLayer.parse(markup)
            items = HTMLParsingLayer.select_items(
                soup=soup,
                item_selector=listing.item_selector,
                container_selector=listing.container_selector,
            )
            log_event(
                logger,
                logging.INFO,
                "page_scraped",
                source=self.name,
                page=page,
                page_url=page_url,
                items=len(items),
            )
            if not items and page > 1:
                break

            events.extend(self.extract_page_events(items))

            if page < max_pages and pagination.delay_seconds > 0:
                self._sleep(pagination.delay_seconds)

        return events

    def build_page_url(self, url: str, page: int) -> str:
        """
        Literal URL for page 1; `{page}` pattern or a `page=N` query parameter afterwards.
        """

        if page <= 1:
            return url
        pagination = self.config.listing.pagination
        if pagination.type == PaginationType.URL and pagination.url_pattern:
            return pagination.url_pattern.replace("{page}", str(page))
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}page={page}"

    def extract_page_events(self, items: list[Tag]) -> list[RawEvent]:
        skip_failed = self.config.error_policy.skip_failed_events

        extracted: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            try:
                extracted.append(self.extract_item(item))
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "item_extraction_failed",
                    source=self.name,
                    index=index,
                    error=str(exc),
                )
                if not skip_failed:
                    raise ExtractionError(f"{self.name}: item {index} could not be extracted: {exc}") from exc

        detail = self.config.detail_page
        if detail is not None and detail.enabled and extracted:
            extracted = self._enrich_all(extracted, detail)

        events: list[RawEvent] = []
        for data in extracted:
            try:
                event = self.build_raw_event(data)
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "item_build_failed",
                    source=self.name,
                    title=data.get("title"),
                    error=str(exc),
                )
                if not skip_failed:
                    raise ExtractionError(f"{self.name}: item could not be built: {exc}") from exc
                continue
            if event is not None:
                events.append(event)
        return events

    def extract_item(self, item: Tag) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, resolver in self.config.fields.items():
            raw = resolver.raw_value(item)
            if raw is None:
                continue
            data[field_name] = self.apply_field_transform(field_name, resolver.transform, raw)
        return data

    # ---------------------------------------------------------------------------
    # Detail pages
    # ---------------------------------------------------------------------------

    def detail_concurrency(self) -> int:
        return max(1, math.floor(self.config.rate_limit.requests_per_second))

    def _enrich_all(self, extracted: list[dict[str, Any]], detail: DetailPageConfig) -> list[dict[str, Any]]:
        workers = self.detail_concurrency()
        if workers == 1:
            return [self.enrich_with_detail(data, detail) for data in extracted]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{self.name}-detail") as pool:
            return list(pool.map(lambda data: self.enrich_with_detail(data, detail), extracted))

    def enrich_with_detail(self, data: dict[str, Any], detail: DetailPageConfig) -> dict[str, Any]:
        """
        Merge detail-page fields over listing fields. Failures keep the listing data.
        """

        link = data.get("link")
        url = self.absolute_url(link) if isinstance(link, str) else None
        if not url:
            return data

        try:
            markup = self.fetch_document(url, wait_for_selector=detail.wait_for_selector)
            detail_data = self.extract_detail(
                HTMLParsingLayer.parse(markup),
                detail,
                fallback_title=data.get("title") if isinstance(data.get("title"), str) else None,
            )
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "detail_fetch_failed",
                source=self.name,
                url=url,
                error=str(exc),
            )
            return data
        finally:
            if detail.delay_seconds > 0:
                self._sleep(detail.delay_seconds)

        merged = dict(data)
        merged.update({key: value for key, value in detail_data.items() if value not in (None, "")})
        return merged

    def extract_detail(
        self,
        soup: BeautifulSoup,
        detail: DetailPageConfig,
        *,
        fallback_title: str | None = None,
    ) -> dict[str, Any]:
        """
        Structured JSON-LD data first, then detail selectors for whatever it lacks.
        """

        result: dict[str, Any] = {}
        if detail.use_structured_data:
            structured = HTMLParsingLayer.extract_structured_event(soup)
            if structured:
                result.update(self._transform_structured(structured))

        for field_name, resolver in detail.fields.items():
            if field_name in result:
                continue
            if field_name == "date":
                if not resolver.has_selector and resolver.default is None:
                    continue
                parsed_date = self._scan_detail_date(soup, resolver, fallback_title=fallback_title)
                if parsed_date is not None:
                    result["date"] = parsed_date
                continue
            raw = resolver.raw_value(soup)
            if raw is None:
                continue
            result[field_name] = self.apply_field_transform(field_name, resolver.transform, raw)
        return result

    def _scan_detail_date(self, soup: BeautifulSoup, resolver: Any, *, fallback_title: str | None) -> datetime | None:
        """
        First matching element whose text survives the date transform, else the title text.
        """

        transform = resolver.transform or TransformKind.PARSE_SPANISH_DATETIME
        candidates = resolver.candidates(soup)
        if resolver.default:
            candidates.append(resolver.default)
        title = soup.select_one("h1")
        if title is not None:
            candidates.append(title.get_text(" ", strip=True))
        if fallback_title:
            candidates.append(fallback_title)

        for candidate in candidates:
            try:
                parsed = apply_transform(transform, candidate, self.config.base_url)
            except Exception:
                parsed = None
            if isinstance(parsed, datetime):
                return parsed
        return None

    def _transform_structured(self, structured: dict[str, Any]) -> dict[str, Any]:
        transformed: dict[str, Any] = {}
        for key, value in structured.items():
            kind = _STRUCTURED_TRANSFORMS.get(key)
            if kind is None or not isinstance(value, str):
                transformed[key] = value
                continue
            result = apply_transform(kind, value, self.config.base_url)
            if result is not None:
                transformed[key] = result
        return transformed

    # ---------------------------------------------------------------------------
    # Emission
    # ---------------------------------------------------------------------------

    def build_raw_event(self, data: dict[str, Any]) -> RawEvent | None:
        """
        Turn extracted fields into a RawEvent; items missing title, date or venue are dropped.
        """

        missing = [name for name in REQUIRED_ITEM_FIELDS if not data.get(name)]
        if missing:
            log_event(
                logger,
                logging.WARNING,
                "item_dropped_missing_fields",
                source=self.name,
                title=data.get("title"),
                missing=missing,
            )
            return None

        date_value = data["date"]
        if isinstance(date_value, datetime):
            time_text = data.get("time")
            if isinstance(time_text, str):
                date_value = combine_date_and_time(date_value, time_text)
            date_value = self.localize(date_value)
        elif isinstance(date_value, str):
            reparsed = parse_spanish_datetime(date_value)
            date_value = self.localize(reparsed) if reparsed is not None else date_value

        end_date = data.get("end_date")
        if isinstance(end_date, datetime):
            end_date = self.localize(end_date)
        else:
            end_date = None

        link = data.get("link")
        external_url = self.absolute_url(link) if isinstance(link, str) else None
        price = self._coerce_price(data.get("price"))
        price_max = self._coerce_price(data.get("price_max"))
        currency = data.get("currency") if isinstance(data.get("currency"), str) else None
        if currency is None and price is not None:
            currency = self.config.default_currency

        image = data.get("image")
        return RawEvent(
            title=str(data["title"]),
            date=date_value,
            source_name=self.name,
            venue=str(data["venue"]),
            address=self._optional_text(data.get("address")),
            city=self._optional_text(data.get("city")),
            country=self._optional_text(data.get("country")),
            category=self._optional_text(data.get("category")),
            genre=self._optional_text(data.get("genre")),
            description=self._optional_text(data.get("description")),
            price=price,
            price_max=price_max,
            currency=currency,
            image_url=self.absolute_url(image) if isinstance(image, str) else None,
            external_url=external_url,
            external_id=derive_external_id(
                link=external_url,
                title=str(data["title"]),
                date=date_value,
                venue=str(data["venue"]),
            ),
            end_date=end_date,
        )

    @staticmethod
    def _coerce_price(value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            parsed = extract_price(value)
            return float(parsed) if parsed is not None else None
        return None

    @staticmethod
    def _optional_text(value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None
