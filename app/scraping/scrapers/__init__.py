"""
Scraper subclass exports.
"""

from app.scraping.scrapers.embedded_json import EmbeddedJsonScraper
from app.scraping.scrapers.generic import GenericWebScraper
from app.scraping.scrapers.rendered import RenderedWebScraper

__all__ = ["EmbeddedJsonScraper", "GenericWebScraper", "RenderedWebScraper"]
