"""
Scraping configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.scraping.parsing.html_parsers import FieldResolver

EVENT_FIELDS = (
    "title",
    "date",
    "time",
    "venue",
    "address",
    "city",
    "country",
    "category",
    "genre",
    "description",
    "price",
    "price_max",
    "image",
    "link",
)


class ScraperType:
    GENERIC = "generic"
    RENDERED = "rendered"
    EMBEDDED_JSON = "embedded_json"


class PaginationType:
    NONE = "none"
    URL = "url"
    INFINITE = "infinite"


@dataclass(frozen=True)
class PaginationConfig:
    """
    Listing pagination. `url_pattern` holds a `{page}` placeholder for URL pagination.
    """

    type: str = PaginationType.NONE
    url_pattern: str | None = None
    max_pages: int = 1
    delay_seconds: float = 1.0


@dataclass(frozen=True)
class ListingConfig:
    url: str
    item_selector: str
    container_selector: str | None = None
    pagination: PaginationConfig = field(default_factory=PaginationConfig)


@dataclass(frozen=True)
class DetailPageConfig:
    """
    Detail-page enrichment with its own compiled field resolvers.
    """

    enabled: bool
    fields: dict[str, FieldResolver] = field(default_factory=dict)
    delay_seconds: float = 0.5
    use_structured_data: bool = True
    wait_for_selector: str | None = None


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class ErrorPolicy:
    skip_failed_events: bool = True
    skip_failed_pages: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class RateLimitConfig:
    requests_per_second: float = 1.0
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class VenuePattern:
    """
    Regex matched against an event link to infer its venue.
    """

    pattern: str
    venue: str


@dataclass(frozen=True)
class EmbeddedJsonConfig:
    """
    Location of event cards inside JSON embedded in a page script.
    """

    script_pattern: str = r"App\.bootstrapData\(([\s\S]*?)\);(?:\s*App\.start\(\))?"
    link_keywords: tuple[str, ...] = ("/event/", "/page/")
    venue_patterns: tuple[VenuePattern, ...] = ()


@dataclass(frozen=True)
class ScraperConfig:
    """
    Immutable definition of how to scrape one site.
    """

    name: str
    base_url: str
    listing: ListingConfig
    fields: dict[str, FieldResolver]
    scraper_type: str = ScraperType.GENERIC
    enabled: bool = True
    detail_page: DetailPageConfig | None = None
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    error_policy: ErrorPolicy = field(default_factory=ErrorPolicy)
    user_agent: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timezone: str = "America/Argentina/Buenos_Aires"
    default_currency: str = "ARS"
    requires_javascript: bool = False
    wait_for_selector: str | None = None
    wait_timeout_seconds: float = 30.0
    embedded_json: EmbeddedJsonConfig | None = None

    def default_value(self, field_name: str) -> str | None:
        resolver = self.fields.get(field_name)
        return resolver.default if resolver is not None else None


@dataclass(frozen=True)
class ScrapingSettings:
    """
    Runtime settings for event scraping.
    """

    config_dir: str = "app/scraping/config/sites"
    default_user_agent: str = "EnVivoBot/1.0 (+https://envivo.ar/bot)"
    default_rate_limit_per_second: float = 1.0
    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    page_delay_seconds: float = 1.0
    detail_delay_seconds: float = 0.5
    orchestrator_timeout_seconds: float | None = None
    browser_headless: bool = True
