"""
Source registry: builds data sources from site configs and API connector factories.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping

import requests

from app.scraping.browser import PageRenderer
from app.scraping.config.models import ScraperConfig, ScraperType, ScrapingSettings
from app.scraping.rate_limiter import DomainRateLimiter
from app.scraping.scrapers import EmbeddedJsonScraper, GenericWebScraper, RenderedWebScraper
from app.scraping.types import DataSource

SourceFactory = Callable[[], DataSource]


class ScraperRegistry:
    """
    Name -> source lookup over site configs plus registered factories.

    One HTTP session and rate limiter are shared by every scraper it creates;
    rendering sources share the injected browser handle.
    """

    def __init__(
        self,
        *,
        configs: Mapping[str, ScraperConfig],
        settings: ScrapingSettings,
        session: requests.Session | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        browser: PageRenderer | None = None,
    ) -> None:
        self._configs: dict[str, ScraperConfig] = dict(configs)
        self._factories: dict[str, SourceFactory] = {}
        self._settings = settings
        self._session = session or requests.Session()
        self._rate_limiter = rate_limiter or DomainRateLimiter(
            default_rate_limit_per_second=settings.default_rate_limit_per_second
        )
        self._browser = browser

    def available(self) -> list[str]:
        enabled = [name for name, config in self._configs.items() if config.enabled]
        return sorted({*enabled, *self._factories})

    def register(self, config: ScraperConfig) -> None:
        self._configs[config.name] = config

    def register_factory(self, name: str, factory: SourceFactory) -> None:
        self._factories[name.strip().lower()] = factory

    def unregister(self, name: str) -> None:
        normalized = name.strip().lower()
        self._configs.pop(normalized, None)
        self._factories.pop(normalized, None)

    def create(self, name: str) -> DataSource:
        normalized = name.strip().lower()
        factory = self._factories.get(normalized)
        if factory is not None:
            return factory()

        config = self._configs.get(normalized)
        if config is None or not config.enabled:
            allowed = ", ".join(self.available())
            raise ValueError(f"Unknown source '{name}'. Available sources: {allowed}.")
        return self._create_scraper(config)

    def create_many(self, names: Iterable[str]) -> list[DataSource]:
        return [self.create(name) for name in names]

    def create_all(self) -> list[DataSource]:
        return self.create_many(self.available())

    def _create_scraper(self, config: ScraperConfig) -> DataSource:
        common = {
            "config": config,
            "settings": self._settings,
            "session": self._session,
            "rate_limiter": self._rate_limiter,
        }
        if config.scraper_type == ScraperType.EMBEDDED_JSON:
            return EmbeddedJsonScraper(**common)
        if config.scraper_type == ScraperType.RENDERED or config.requires_javascript:
            if self._browser is None:
                raise ValueError(f"Source '{config.name}' renders with a browser but no browser handle was provided.")
            return RenderedWebScraper(browser=self._browser, **common)
        if config.scraper_type == ScraperType.GENERIC:
            return GenericWebScraper(**common)
        raise ValueError(
            f"Unknown scraper_type='{config.scraper_type}' for source='{config.name}'."
        )
