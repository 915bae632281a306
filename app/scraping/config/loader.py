"""
Environment + JSON config loader for event scraping.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

from db.config import load_env_files

from app.scraping.config.models import (
    EVENT_FIELDS,
    DetailPageConfig,
    EmbeddedJsonConfig,
    ErrorPolicy,
    ListingConfig,
    PaginationConfig,
    PaginationType,
    RateLimitConfig,
    RetryPolicy,
    ScraperConfig,
    ScraperType,
    ScrapingSettings,
    VenuePattern,
)
from app.scraping.parsing.html_parsers import FieldResolver, compile_field
from app.scraping.transforms import TransformKind

_SCRAPER_TYPES = {ScraperType.GENERIC, ScraperType.RENDERED, ScraperType.EMBEDDED_JSON}
_PAGINATION_TYPES = {PaginationType.NONE, PaginationType.URL, PaginationType.INFINITE}


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_scraping_settings() -> ScrapingSettings:
    """
    Return cached scraper settings from environment variables.
    """

    load_env_files()
    config_dir = _get_str_env("SCRAPER_CONFIG_DIR", "app/scraping/config/sites")
    overall_timeout = _get_float_env("SCRAPER_ORCHESTRATOR_TIMEOUT_SECONDS", 0.0)
    return ScrapingSettings(
        config_dir=str(_resolve_config_path(config_dir)),
        default_user_agent=_get_str_env(
            "SCRAPER_USER_AGENT",
            "EnVivoBot/1.0 (+https://envivo.ar/bot)",
        ),
        default_rate_limit_per_second=max(
            0.1,
            _get_float_env("SCRAPER_RATE_LIMIT_PER_SECOND", 1.0),
        ),
        timeout_seconds=max(
            1.0,
            _get_float_env("SCRAPER_TIMEOUT_SECONDS", 15.0),
        ),
        max_retries=max(
            0,
            _get_int_env("SCRAPER_MAX_RETRIES", 3),
        ),
        backoff_initial_seconds=max(
            0.0,
            _get_float_env("SCRAPER_BACKOFF_INITIAL_SECONDS", 1.0),
        ),
        backoff_multiplier=max(
            1.0,
            _get_float_env("SCRAPER_BACKOFF_MULTIPLIER", 2.0),
        ),
        page_delay_seconds=max(
            0.0,
            _get_float_env("SCRAPER_PAGE_DELAY_SECONDS", 1.0),
        ),
        detail_delay_seconds=max(
            0.0,
            _get_float_env("SCRAPER_DETAIL_DELAY_SECONDS", 0.5),
        ),
        orchestrator_timeout_seconds=overall_timeout if overall_timeout > 0 else None,
        browser_headless=_get_bool_env("SCRAPER_BROWSER_HEADLESS", True),
    )


def load_scraper_configs(*, config_dir: str, settings: ScrapingSettings) -> dict[str, ScraperConfig]:
    """
    Load every `*.json` site config in a directory, keyed by source name.
    """

    path = _resolve_config_path(config_dir)
    if not path.is_dir():
        raise FileNotFoundError(f"Scraper config directory not found: {path}")

    configs: dict[str, ScraperConfig] = {}
    for config_file in sorted(path.glob("*.json")):
        config = load_scraper_config(config_path=str(config_file), settings=settings)
        if config.name in configs:
            raise ValueError(f"Duplicate scraper config name '{config.name}' in {config_file}.")
        configs[config.name] = config
    return configs


def load_scraper_config(*, config_path: str, settings: ScrapingSettings) -> ScraperConfig:
    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Scraper config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw_data, dict):
        raise ValueError(f"Invalid scraper config {path}: top level must be an object.")
    return parse_scraper_config(raw_data, settings=settings)


def parse_scraper_config(entry: Mapping[str, Any], *, settings: ScrapingSettings) -> ScraperConfig:
    """
    Validate one raw site definition and compile its field resolvers.

    Unknown transform names, scraper types and pagination types raise ValueError here,
    so a bad config never reaches a scrape run.
    """

    name = str(entry.get("name", "")).strip().lower()
    base_url = str(entry.get("base_url", "")).strip().rstrip("/")
    if not name or not base_url:
        raise ValueError("Invalid scraper config: 'name' and 'base_url' are required.")

    scraper_type = str(entry.get("scraper_type", ScraperType.GENERIC)).strip().lower()
    requires_javascript = _optional_bool(entry.get("requires_javascript"), False)
    if requires_javascript and scraper_type == ScraperType.GENERIC:
        scraper_type = ScraperType.RENDERED
    if scraper_type not in _SCRAPER_TYPES:
        allowed = ", ".join(sorted(_SCRAPER_TYPES))
        raise ValueError(
            f"Unknown scraper_type='{scraper_type}' for source='{name}'. Allowed types: {allowed}."
        )

    listing = _parse_listing(name=name, base_url=base_url, raw=entry.get("listing"), settings=settings)
    fields = _compile_fields(
        source=name,
        selectors=entry.get("selectors"),
        defaults=entry.get("default_values"),
        transforms=entry.get("transforms"),
    )
    if scraper_type != ScraperType.EMBEDDED_JSON:
        if not listing.item_selector:
            raise ValueError(f"Invalid scraper config '{name}': 'listing.item_selector' is required.")
        if not fields["title"].has_selector:
            raise ValueError(f"Invalid scraper config '{name}': a title selector is required.")

    error_handling = entry.get("error_handling") if isinstance(entry.get("error_handling"), dict) else {}
    rate_limit = entry.get("rate_limit") if isinstance(entry.get("rate_limit"), dict) else {}

    return ScraperConfig(
        name=name,
        base_url=base_url,
        listing=listing,
        fields=fields,
        scraper_type=scraper_type,
        enabled=_optional_bool(entry.get("enabled"), True),
        detail_page=_parse_detail_page(name=name, raw=entry.get("detail_page"), settings=settings),
        rate_limit=RateLimitConfig(
            requests_per_second=max(
                0.1,
                _optional_float(rate_limit.get("requests_per_second"))
                or settings.default_rate_limit_per_second,
            ),
            timeout_seconds=max(
                1.0,
                _optional_float(rate_limit.get("timeout_seconds")) or settings.timeout_seconds,
            ),
        ),
        error_policy=_parse_error_policy(error_handling, settings=settings),
        user_agent=_optional_str(entry.get("user_agent")),
        headers=_normalize_headers(entry.get("headers", {})),
        timezone=_optional_str(entry.get("timezone")) or "America/Argentina/Buenos_Aires",
        default_currency=(_optional_str(entry.get("default_currency")) or "ARS").upper(),
        requires_javascript=requires_javascript or scraper_type == ScraperType.RENDERED,
        wait_for_selector=_optional_str(entry.get("wait_for_selector")),
        wait_timeout_seconds=max(1.0, _optional_float(entry.get("wait_timeout_seconds")) or 30.0),
        embedded_json=_parse_embedded_json(entry.get("embedded_json"))
        if scraper_type == ScraperType.EMBEDDED_JSON
        else None,
    )


def _parse_listing(
    *,
    name: str,
    base_url: str,
    raw: object,
    settings: ScrapingSettings,
) -> ListingConfig:
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid scraper config '{name}': 'listing' must be an object.")

    url = _optional_str(raw.get("url"))
    if url is None:
        raise ValueError(f"Invalid scraper config '{name}': 'listing.url' is required.")

    pagination_raw = raw.get("pagination") if isinstance(raw.get("pagination"), dict) else {}
    pagination_type = str(pagination_raw.get("type", PaginationType.NONE)).strip().lower()
    if pagination_type not in _PAGINATION_TYPES:
        allowed = ", ".join(sorted(_PAGINATION_TYPES))
        raise ValueError(
            f"Unknown pagination type '{pagination_type}' for source='{name}'. Allowed types: {allowed}."
        )
    url_pattern = _optional_str(pagination_raw.get("url_pattern"))
    if pagination_type == PaginationType.URL and (url_pattern is None or "{page}" not in url_pattern):
        raise ValueError(
            f"Invalid scraper config '{name}': URL pagination needs a 'url_pattern' with '{{page}}'."
        )
    max_pages = _optional_int(pagination_raw.get("max_pages"))
    delay = _optional_float(pagination_raw.get("delay_seconds"))

    return ListingConfig(
        url=_absolute(base_url, url),
        item_selector=_optional_str(raw.get("item_selector")) or "",
        container_selector=_optional_str(raw.get("container_selector")),
        pagination=PaginationConfig(
            type=pagination_type,
            url_pattern=_absolute(base_url, url_pattern) if url_pattern else None,
            max_pages=max(1, max_pages) if max_pages is not None and pagination_type != PaginationType.NONE else 1,
            delay_seconds=max(0.0, delay) if delay is not None else settings.page_delay_seconds,
        ),
    )


def _parse_detail_page(*, name: str, raw: object, settings: ScrapingSettings) -> DetailPageConfig | None:
    if not isinstance(raw, dict):
        return None

    delay = _optional_float(raw.get("delay_seconds"))
    return DetailPageConfig(
        enabled=_optional_bool(raw.get("enabled"), False),
        fields=_compile_fields(
            source=name,
            selectors=raw.get("selectors"),
            defaults=raw.get("default_values"),
            transforms=raw.get("transforms"),
        ),
        delay_seconds=max(0.0, delay) if delay is not None else settings.detail_delay_seconds,
        use_structured_data=_optional_bool(raw.get("use_structured_data"), True),
        wait_for_selector=_optional_str(raw.get("wait_for_selector")),
    )


def _parse_error_policy(raw: Mapping[str, Any], *, settings: ScrapingSettings) -> ErrorPolicy:
    retry_raw = raw.get("retry") if isinstance(raw.get("retry"), dict) else {}
    max_retries = _optional_int(retry_raw.get("max_retries"))
    initial_delay = _optional_float(retry_raw.get("initial_delay_seconds"))
    multiplier = _optional_float(retry_raw.get("backoff_multiplier"))
    return ErrorPolicy(
        skip_failed_events=_optional_bool(raw.get("skip_failed_events"), True),
        skip_failed_pages=_optional_bool(raw.get("skip_failed_pages"), False),
        retry=RetryPolicy(
            max_retries=max(0, max_retries) if max_retries is not None else settings.max_retries,
            initial_delay_seconds=max(0.0, initial_delay)
            if initial_delay is not None
            else settings.backoff_initial_seconds,
            backoff_multiplier=max(1.0, multiplier) if multiplier is not None else settings.backoff_multiplier,
        ),
    )


def _parse_embedded_json(raw: object) -> EmbeddedJsonConfig:
    if not isinstance(raw, dict):
        return EmbeddedJsonConfig()

    defaults = EmbeddedJsonConfig()
    keywords = raw.get("link_keywords")
    patterns: list[VenuePattern] = []
    for item in raw.get("venue_patterns") or []:
        if not isinstance(item, dict):
            continue
        pattern = _optional_str(item.get("pattern"))
        venue = _optional_str(item.get("venue"))
        if pattern and venue:
            patterns.append(VenuePattern(pattern=pattern, venue=venue))

    return EmbeddedJsonConfig(
        script_pattern=_optional_str(raw.get("script_pattern")) or defaults.script_pattern,
        link_keywords=tuple(str(item) for item in keywords if isinstance(item, str))
        if isinstance(keywords, list)
        else defaults.link_keywords,
        venue_patterns=tuple(patterns),
    )


def _compile_fields(
    *,
    source: str,
    selectors: object,
    defaults: object,
    transforms: object,
) -> dict[str, FieldResolver]:
    selector_map = _normalize_mapping(selectors)
    default_map = _normalize_mapping(defaults)
    transform_map = _normalize_mapping(transforms)

    unknown = sorted((set(selector_map) | set(default_map) | set(transform_map)) - set(EVENT_FIELDS))
    if unknown:
        raise ValueError(f"Invalid scraper config '{source}': unknown fields {', '.join(unknown)}.")

    compiled: dict[str, FieldResolver] = {}
    for field_name in EVENT_FIELDS:
        transform_name = transform_map.get(field_name)
        try:
            transform = TransformKind.from_name(transform_name) if transform_name else None
        except ValueError as exc:
            raise ValueError(f"Invalid scraper config '{source}' field '{field_name}': {exc}") from exc
        compiled[field_name] = compile_field(
            name=field_name,
            selector=selector_map.get(field_name),
            default=default_map.get(field_name),
            transform=transform,
        )
    return compiled


def _absolute(base_url: str, url: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(f"{base_url.rstrip('/')}/", url.lstrip("/"))


def _normalize_mapping(values: object) -> dict[str, str]:
    if not isinstance(values, dict):
        return {}

    normalized: dict[str, str] = {}
    for key, value in values.items():
        if not isinstance(key, str) or value is None:
            continue
        text = str(value).strip()
        if key.strip() and text:
            normalized[key.strip().lower()] = text
    return normalized


def _normalize_headers(headers: object) -> dict[str, str]:
    if not isinstance(headers, dict):
        return {}

    normalized: dict[str, str] = {}
    for key, value in headers.items():
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        if key.strip() and value.strip():
            normalized[key.strip()] = value.strip()
    return normalized


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
