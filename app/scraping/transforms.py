"""
app/scraping/transforms.py

Pure parsing functions applied to extracted field values.

Every transform is total: unparseable input yields None, never an exception.
Date transforms return naive datetimes unless the input carries an offset;
the scraper localizes naive values to the source timezone.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from bs4 import BeautifulSoup

SPANISH_MONTHS: dict[str, int] = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
    "ene": 1,
    "feb": 2,
    "mar": 3,
    "abr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "sep": 9,
    "sept": 9,
    "set": 9,
    "oct": 10,
    "nov": 11,
    "dic": 12,
}

_ISO_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[t ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?(?:z|[+-]\d{2}:?\d{2})?$")
_NAMED_WITH_YEAR = re.compile(r"(\d{1,2})\s+(?:de\s+)?([a-z]+)\.?,?\s+(?:de\s+|del\s+)?(\d{4})\b")
_NUMERIC_WITH_YEAR = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4})\b")
_NAMED_WITHOUT_YEAR = re.compile(r"\b(\d{1,2})\s+(?:de\s+)?([a-z]+)\b")
_NUMERIC_WITHOUT_YEAR = re.compile(r"\b(\d{1,2})/(\d{1,2})\b(?![/-]\d)")
_CLOCK_TIME = re.compile(r"\b(\d{1,2}):(\d{2})\b(?:\s*(?:hs|hrs|h)\b\.?)?")
_HOUR_ONLY_TIME = re.compile(r"\b(\d{1,2})\s*(?:hs|hrs)\b")

_FREE_KEYWORDS = re.compile(r"\b(?:gratis|free|sin cargo|entrada libre)\b")
_NUMBER_TOKEN = re.compile(r"\d[\d.,]*")
_DECIMAL_SUFFIX = re.compile(r"[.,](\d{1,2})$")

_ALLOWED_TAGS = {"p", "br", "strong", "em", "b", "i", "u", "a"}
_ALLOWED_ATTRIBUTES = {"href", "target"}
_DROPPED_WITH_CONTENT = ["script", "style", "iframe", "object", "embed", "noscript", "template"]
_UNSAFE_URL_SCHEMES = ("javascript:", "vbscript:", "data:")

_BACKGROUND_URL = re.compile(r"url\(\s*['\"]?([^'\")]+?)['\"]?\s*\)", flags=re.IGNORECASE)
_VENUE_SUFFIX = re.compile(r"^(.+)\s+en\s+\S.*$", flags=re.IGNORECASE | re.DOTALL)
_LABELED_VALUE = re.compile(r"^[^:]{1,60}:\s*(.+)$", flags=re.DOTALL)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def clean_whitespace(value: str) -> str | None:
    """
    Trim, collapse runs of spaces, and collapse runs of line breaks to one.
    """

    if not value:
        return None
    text = value.replace("\xa0", " ").replace("&nbsp;", " ")
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r"\s*\n\s*", "\n", text).strip()
    return text or None


def sanitize_html(value: str) -> str | None:
    """
    Keep only a small inline-formatting whitelist; drop scripts, styles and handlers.
    """

    if not value or not value.strip():
        return None

    soup = BeautifulSoup(value, "html.parser")
    for tag in soup.find_all(_DROPPED_WITH_CONTENT):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in _ALLOWED_TAGS:
            tag.unwrap()
            continue
        kept: dict[str, Any] = {}
        for name, attr_value in tag.attrs.items():
            if name not in _ALLOWED_ATTRIBUTES:
                continue
            if name == "href" and str(attr_value).strip().lower().startswith(_UNSAFE_URL_SCHEMES):
                continue
            kept[name] = attr_value
        tag.attrs = kept

    sanitized = str(soup).strip()
    return sanitized or None


def strip_venue_suffix(value: str) -> str | None:
    """
    "Artist en Café Berlín" -> "Artist". Titles without a suffix pass through.
    """

    text = clean_whitespace(value or "")
    if text is None:
        return None
    match = _VENUE_SUFFIX.match(text)
    return match.group(1).strip() if match else text


def extract_labeled_value(value: str) -> str | None:
    """
    "Recinto: Café Berlín" -> "Café Berlín".
    """

    text = clean_whitespace(value or "")
    if text is None:
        return None
    match = _LABELED_VALUE.match(text)
    if match is None:
        return None
    return match.group(1).strip() or None


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def to_absolute_url(value: str, base_url: str | None = None) -> str | None:
    """
    Leave absolute URLs untouched; join relative ones with exactly one slash.
    """

    if not value or not value.strip():
        return None
    url = value.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    if not base_url:
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def extract_background_image(value: str) -> str | None:
    """
    Pull the URL out of an inline `background-image: url('...')` style.
    """

    if not value:
        return None
    match = _BACKGROUND_URL.search(value)
    if match is None:
        return None
    return match.group(1).strip() or None


# ---------------------------------------------------------------------------
# Prices
# ---------------------------------------------------------------------------


def extract_price(value: str) -> int | None:
    """
    Parse the first amount in a price label, rounded half-up to whole units.

    A trailing one or two digit group after "." or "," is a decimal part;
    any other separator is thousands grouping ("1.500" -> 1500, "22400.50" -> 22401).
    """

    if not value:
        return None
    normalized = value.lower().strip()
    if _FREE_KEYWORDS.search(normalized):
        return 0

    match = _NUMBER_TOKEN.search(normalized)
    if match is None:
        return None
    token = match.group(0).rstrip(".,")

    decimal_match = _DECIMAL_SUFFIX.search(token)
    try:
        if decimal_match:
            integer_part = re.sub(r"[.,]", "", token[: decimal_match.start()]) or "0"
            amount = Decimal(f"{integer_part}.{decimal_match.group(1)}")
        else:
            amount = Decimal(re.sub(r"[.,]", "", token))
    except InvalidOperation:
        return None
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _normalize_date_text(value: str) -> str:
    text = value.replace("&nbsp;", " ").replace("\xa0", " ").lower()
    return re.sub(r"\s+", " ", text).strip()


def _build_date(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _infer_year(month: int, day: int, today: date) -> datetime | None:
    """
    Use the current year, rolling forward one year when the date already passed.
    """

    candidate = _build_date(today.year, month, day)
    if candidate is None:
        return _build_date(today.year + 1, month, day)
    if candidate.date() < today:
        return _build_date(today.year + 1, month, day)
    return candidate


def _parse_iso(text: str) -> datetime | None:
    if not _ISO_PATTERN.match(text):
        return None
    normalized = text.upper()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def parse_spanish_date(value: str, *, today: date | None = None) -> datetime | None:
    """
    Parse the first date found in Spanish or numeric text.

    Supported, in order: ISO 8601, "15 de marzo de 2025" (full or abbreviated
    month), "15/03/2025" or "15-03-2025", then yearless "15 de marzo", "09 NOV"
    and "15/03" with the year inferred from `today`.
    """

    if not value or not isinstance(value, str):
        return None
    text = _normalize_date_text(value)
    if not text:
        return None

    iso = _parse_iso(text)
    if iso is not None:
        return iso

    for match in _NAMED_WITH_YEAR.finditer(text):
        month = SPANISH_MONTHS.get(match.group(2))
        if month is not None:
            parsed = _build_date(int(match.group(3)), month, int(match.group(1)))
            if parsed is not None:
                return parsed

    match = _NUMERIC_WITH_YEAR.search(text)
    if match:
        parsed = _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if parsed is not None:
            return parsed

    reference = today or date.today()
    for match in _NAMED_WITHOUT_YEAR.finditer(text):
        month = SPANISH_MONTHS.get(match.group(2))
        if month is not None:
            parsed = _infer_year(month, int(match.group(1)), reference)
            if parsed is not None:
                return parsed

    match = _NUMERIC_WITHOUT_YEAR.search(text)
    if match:
        month = int(match.group(2))
        if 1 <= month <= 12:
            return _infer_year(month, int(match.group(1)), reference)

    return None


def extract_time(value: str) -> tuple[int, int] | None:
    """
    Find an "HH:MM" (optionally "hs"/"hrs" suffixed) or "21 hs" time of day.
    """

    if not value:
        return None
    text = _normalize_date_text(value)
    match = _CLOCK_TIME.search(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        match = _HOUR_ONLY_TIME.search(text)
        if match is None:
            return None
        hour, minute = int(match.group(1)), 0
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def has_time_component(value: datetime) -> bool:
    return (value.hour, value.minute, value.second) != (0, 0, 0)


def combine_date_and_time(day: datetime, time_text: str) -> datetime:
    """
    Attach a separately scraped time of day to a date that has none.
    """

    if has_time_component(day):
        return day
    parsed = extract_time(time_text)
    if parsed is None:
        return day
    return day.replace(hour=parsed[0], minute=parsed[1])


def parse_spanish_datetime(value: str, *, today: date | None = None) -> datetime | None:
    """
    Parse a date plus an optional time of day.

    Handles "Martes 11 NOV - 20:45 hrs", "15 de marzo de 2025 a las 21:00"
    and "15/03/2025 21:00". ISO input keeps its own time.
    """

    parsed = parse_spanish_date(value, today=today)
    if parsed is None:
        return None
    if _parse_iso(_normalize_date_text(value)) is not None:
        return parsed
    return combine_date_and_time(parsed, value)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TransformKind(str, Enum):
    """
    Named transforms a scraper config may reference.
    """

    CLEAN_WHITESPACE = "clean_whitespace"
    SANITIZE_HTML = "sanitize_html"
    EXTRACT_PRICE = "extract_price"
    TO_ABSOLUTE_URL = "to_absolute_url"
    PARSE_SPANISH_DATE = "parse_spanish_date"
    PARSE_SPANISH_DATETIME = "parse_spanish_datetime"
    EXTRACT_BACKGROUND_IMAGE = "extract_background_image"
    STRIP_VENUE_SUFFIX = "strip_venue_suffix"
    EXTRACT_LABELED_VALUE = "extract_labeled_value"

    @classmethod
    def from_name(cls, name: str) -> "TransformKind":
        normalized = name.strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        allowed = ", ".join(kind.value for kind in cls)
        raise ValueError(f"Unknown transform '{name}'. Allowed transforms: {allowed}.")


TransformFunction = Callable[[str, str | None], Any]

_TRANSFORMS: dict[TransformKind, TransformFunction] = {
    TransformKind.CLEAN_WHITESPACE: lambda value, base_url: clean_whitespace(value),
    TransformKind.SANITIZE_HTML: lambda value, base_url: sanitize_html(value),
    TransformKind.EXTRACT_PRICE: lambda value, base_url: extract_price(value),
    TransformKind.TO_ABSOLUTE_URL: to_absolute_url,
    TransformKind.PARSE_SPANISH_DATE: lambda value, base_url: parse_spanish_date(value),
    TransformKind.PARSE_SPANISH_DATETIME: lambda value, base_url: parse_spanish_datetime(value),
    TransformKind.EXTRACT_BACKGROUND_IMAGE: lambda value, base_url: extract_background_image(value),
    TransformKind.STRIP_VENUE_SUFFIX: lambda value, base_url: strip_venue_suffix(value),
    TransformKind.EXTRACT_LABELED_VALUE: lambda value, base_url: extract_labeled_value(value),
}


def get_transform(kind: TransformKind) -> TransformFunction:
    return _TRANSFORMS[kind]


def apply_transform(kind: TransformKind, value: str, base_url: str | None = None) -> Any:
    """
    Run one transform; None means the value could not be transformed.
    """

    return _TRANSFORMS[kind](value, base_url)
