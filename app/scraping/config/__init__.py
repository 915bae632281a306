"""
Config helpers for event scraping.
"""

from app.scraping.config.loader import (
    get_scraping_settings,
    load_scraper_config,
    load_scraper_configs,
    parse_scraper_config,
)
from app.scraping.config.models import (
    DetailPageConfig,
    ErrorPolicy,
    ListingConfig,
    PaginationConfig,
    ScraperConfig,
    ScrapingSettings,
)

__all__ = [
    "DetailPageConfig",
    "ErrorPolicy",
    "ListingConfig",
    "PaginationConfig",
    "ScraperConfig",
    "ScrapingSettings",
    "get_scraping_settings",
    "load_scraper_config",
    "load_scraper_configs",
    "parse_scraper_config",
]
