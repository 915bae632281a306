"""
app/services/scrape_service.py

Wires sources, the ingestion pipeline and persistence for one scrape run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache

import requests
from sqlalchemy.orm import Session

from app.config import (
    get_business_rules_config,
    get_external_http_settings,
    get_ticketmaster_settings,
)
from app.connectors.ticketmaster_connector import TicketmasterConnector
from app.domain.ingestion import OrchestratorResult
from app.repositories.blacklist_repository import SQLAlchemyBlacklistRepository
from app.repositories.event_repository import SQLAlchemyEventRepository
from app.repositories.preferences_repository import SQLAlchemyPreferencesRepository
from app.scraping.browser import BrowserHandle
from app.scraping.config import get_scraping_settings, load_scraper_configs
from app.scraping.orchestrator import SourceOrchestrator
from app.scraping.registry import ScraperRegistry
from app.scraping.types import FetchOptions
from app.services.event_ingestion_service import EventIngestionPipeline
from app.services.event_rules import EventRules
from app.services.preferences_service import PreferencesService

logger = logging.getLogger(__name__)


class ScrapeService:
    """
    Runs the selected sources through the ingestion pipeline and commits the results.

    Owns the shared browser handle for the duration of a run.
    """

    def __init__(self) -> None:
        self._settings = get_scraping_settings()
        self._rules_config = get_business_rules_config()
        self._configs = load_scraper_configs(config_dir=self._settings.config_dir, settings=self._settings)

    def available_sources(self) -> list[str]:
        return self._build_registry(browser=None).available()

    def run(
        self,
        *,
        db: Session,
        source_names: Sequence[str] | None = None,
        max_pages: int | None = None,
    ) -> OrchestratorResult:
        """
        Fetch from the named sources (all available ones when omitted).

        Raises ValueError for unknown source names before anything is fetched.
        """

        browser = BrowserHandle(headless=self._settings.browser_headless)
        try:
            registry = self._build_registry(browser=browser)
            names = list(source_names) if source_names else registry.available()
            sources = registry.create_many(names)

            preferences = PreferencesService(store=SQLAlchemyPreferencesRepository(db))
            pipeline = EventIngestionPipeline(
                rules=EventRules(config=self._rules_config, preferences=preferences),
                event_store=SQLAlchemyEventRepository(db),
                blacklist=SQLAlchemyBlacklistRepository(db),
                match_window_hours=self._rules_config.duplicates.date_tolerance_hours,
            )
            orchestrator = SourceOrchestrator(
                pipeline=pipeline,
                timeout_seconds=self._settings.orchestrator_timeout_seconds,
            )
            for source in sources:
                orchestrator.register_source(source)

            result = orchestrator.fetch_all(FetchOptions(max_pages=max_pages))
            if not source_names and not result.failed_sources and preferences.needs_rescraping():
                preferences.mark_rescraping_done()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            browser.close()

        logger.info(
            "Scrape run finished sources=%s events=%s processed=%s duplicates=%s errors=%s",
            ",".join(names),
            result.total_events,
            result.total_processed,
            result.total_duplicates,
            result.total_errors,
        )
        return result

    def _build_registry(self, *, browser: BrowserHandle | None) -> ScraperRegistry:
        session = requests.Session()
        registry = ScraperRegistry(
            configs=self._configs,
            settings=self._settings,
            session=session,
            browser=browser,
        )
        ticketmaster = get_ticketmaster_settings()
        if ticketmaster.enabled:
            http_settings = get_external_http_settings()
            registry.register_factory(
                TicketmasterConnector.name,
                lambda: TicketmasterConnector(
                    settings=ticketmaster,
                    http_settings=http_settings,
                    session=session,
                ),
            )
        return registry


@lru_cache(maxsize=1)
def get_scrape_service() -> ScrapeService:
    """
    Build and cache the scrape service.
    """

    return ScrapeService()
