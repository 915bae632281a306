"""
Config-driven scraper for sites that only render their listing with JavaScript.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests

from app.scraping.base import ScraperRequestError
from app.scraping.browser import PageRenderer
from app.scraping.config.models import ScraperConfig, ScrapingSettings
from app.scraping.logging_utils import log_event
from app.scraping.rate_limiter import DomainRateLimiter
from app.scraping.scrapers.generic import GenericWebScraper

logger = logging.getLogger(__name__)


class RenderedWebScraper(GenericWebScraper):
    """
    Same extraction pipeline as GenericWebScraper; pages come from a shared browser.
    """

    def __init__(
        self,
        *,
        config: ScraperConfig,
        settings: ScrapingSettings,
        browser: PageRenderer,
        session: requests.Session | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            config=config,
            settings=settings,
            session=session,
            rate_limiter=rate_limiter,
            sleep=sleep,
        )
        self.browser = browser

    def fetch_document(self, url: str, *, wait_for_selector: str | None = None) -> str:
        self.rate_limiter.wait(
            url=url,
            rate_limit_per_second=self.config.rate_limit.requests_per_second,
        )
        max_retries = self.config.error_policy.retry.max_retries
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            try:
                return self.browser.render(
                    url,
                    wait_for_selector=wait_for_selector,
                    timeout_seconds=self.config.wait_timeout_seconds,
                    user_agent=self.user_agent,
                    headers=self.config.headers,
                )
            except Exception as exc:
                last_error = exc

            if attempt >= max_retries:
                break

            backoff_seconds = self.backoff_seconds(attempt)
            log_event(
                logger,
                logging.WARNING,
                "render_retry",
                source=self.name,
                url=url,
                attempt=attempt + 1,
                max_retries=max_retries,
                wait_seconds=backoff_seconds,
                error=str(last_error),
            )
            self._sleep(backoff_seconds)

        raise ScraperRequestError(f"Failed to render {url} after retries: {last_error}")
