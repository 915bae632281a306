"""
Base scraper abstraction for event sources.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit, urlunsplit
from zoneinfo import ZoneInfo

import requests

from app.domain.events import RawEvent
from app.scraping.config.models import ScraperConfig, ScrapingSettings
from app.scraping.logging_utils import log_event
from app.scraping.rate_limiter import DomainRateLimiter
from app.scraping.transforms import apply_transform, to_absolute_url
from app.scraping.types import FetchOptions

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
EXTERNAL_ID_MAX_LENGTH = 100


class ScraperRequestError(RuntimeError):
    """
    Raised when a page cannot be fetched after retries.
    """


class ScraperError(RuntimeError):
    """
    Raised when a whole source run fails.
    """


class ExtractionError(ValueError):
    """
    Raised for malformed embedded or structured data.
    """


def derive_external_id(
    *,
    link: str | None,
    title: str | None = None,
    date: datetime | str | None = None,
    venue: str | None = None,
) -> str | None:
    """
    Stable source-side identifier for an event.

    An absolute link is reduced to origin + path + fragment (query dropped);
    without one, a `title_date_venue` slug is used.
    """

    if link:
        parts = urlsplit(link)
        if parts.scheme and parts.netloc:
            return urlunsplit((parts.scheme, parts.netloc.lower(), parts.path, "", parts.fragment))

    if not title:
        return None
    date_text = date.date().isoformat() if isinstance(date, datetime) else str(date or "")
    text = f"{title}_{date_text}_{venue or ''}".lower()
    slug = re.sub(r"[^a-z0-9]+", "_", text).strip("_")
    return slug[:EXTERNAL_ID_MAX_LENGTH] or None


class ScraperBase(ABC):
    """
    Base class implementing rate-limited, retrying fetch mechanics for one configured site.
    """

    def __init__(
        self,
        *,
        config: ScraperConfig,
        settings: ScrapingSettings,
        session: requests.Session | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.settings = settings
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or DomainRateLimiter(
            default_rate_limit_per_second=settings.default_rate_limit_per_second
        )
        self._sleep = sleep

        self.user_agent = config.user_agent or settings.default_user_agent
        self.request_headers = {"User-Agent": self.user_agent, **config.headers}

    @property
    def name(self) -> str:
        return self.config.name

    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        """
        Scrape the source and return raw events. Any failure surfaces as ScraperError.
        """

        started = time.monotonic()
        log_event(logger, logging.INFO, "scrape_started", source=self.name)
        try:
            events = self.scrape_events(options or FetchOptions())
        except ScraperError:
            raise
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "scrape_failed",
                source=self.name,
                error=str(exc),
            )
            raise ScraperError(f"Failed to scrape {self.name}: {exc}") from exc

        log_event(
            logger,
            logging.INFO,
            "scrape_completed",
            source=self.name,
            events=len(events),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        return events

    @abstractmethod
    def scrape_events(self, options: FetchOptions) -> list[RawEvent]:
        """
        Produce raw events for one run.
        """

    def fetch_document(self, url: str, *, wait_for_selector: str | None = None) -> str:
        """
        Return page markup. `wait_for_selector` only matters for rendering sources.
        """

        self.rate_limiter.wait(
            url=url,
            rate_limit_per_second=self.config.rate_limit.requests_per_second,
        )
        return self._request_with_retry(url).text

    def absolute_url(self, value: str | None) -> str | None:
        if not value:
            return None
        return to_absolute_url(value, self.config.base_url)

    def localize(self, value: datetime) -> datetime:
        if value.tzinfo is not None:
            return value
        return value.replace(tzinfo=ZoneInfo(self.config.timezone))

    def apply_field_transform(self, field_name: str, transform: Any, raw: str) -> Any:
        """
        Apply a field transform, keeping the raw value when it fails.
        """

        if transform is None:
            return raw
        try:
            result = apply_transform(transform, raw, self.config.base_url)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "transform_failed",
                source=self.name,
                field=field_name,
                transform=transform.value,
                error=str(exc),
            )
            return raw
        if result is None:
            log_event(
                logger,
                logging.WARNING,
                "transform_returned_empty",
                source=self.name,
                field=field_name,
                transform=transform.value,
                value=raw[:120],
            )
            return raw
        return result

    def backoff_seconds(self, attempt: int) -> float:
        retry = self.config.error_policy.retry
        return retry.initial_delay_seconds * (retry.backoff_multiplier**attempt)

    def _request_with_retry(self, url: str) -> requests.Response:
        max_retries = self.config.error_policy.retry.max_retries
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            try:
                response = self.session.get(
                    url,
                    headers=self.request_headers,
                    timeout=self.config.rate_limit.timeout_seconds,
                    allow_redirects=True,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable status={response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as exc:
                last_error = exc
                if isinstance(exc, requests.HTTPError):
                    status_code = exc.response.status_code if exc.response is not None else None
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise ScraperRequestError(
                            f"Failed to fetch {url}: status={status_code}"
                        ) from exc

            if attempt >= max_retries:
                break

            backoff_seconds = self.backoff_seconds(attempt)
            log_event(
                logger,
                logging.WARNING,
                "request_retry",
                source=self.name,
                url=url,
                attempt=attempt + 1,
                max_retries=max_retries,
                wait_seconds=backoff_seconds,
                error=str(last_error),
            )
            self._sleep(backoff_seconds)

        raise ScraperRequestError(f"Failed to fetch {url} after retries: {last_error}")
