"""
app/services/deduplication.py

Fuzzy duplicate detection and update-vs-keep decisions between canonical events.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone

from app.config import DuplicateRules
from app.domain.events import Event

# Higher wins when deciding whether an incoming duplicate replaces the stored one.
SOURCE_RELIABILITY: dict[str, int] = {
    "ticketmaster": 10,
    "eventbrite": 9,
    "spotify": 8,
    "livepass": 5,
    "movistararena": 5,
    "teatrocoliseo": 5,
    "teatrovorterix": 5,
    "allaccess": 5,
    "scraper_local": 5,
    "file": 3,
}
DEFAULT_RELIABILITY = 1
DESCRIPTION_GROWTH_FACTOR = 1.5


def dice_coefficient(first: str, second: str) -> float:
    """
    Sorensen-Dice similarity over character bigrams, ignoring whitespace.

    Returns a score in [0, 1]; identical strings score 1.
    """

    left = "".join(first.split())
    right = "".join(second.split())
    if left == right:
        return 1.0
    if len(left) < 2 or len(right) < 2:
        return 0.0

    left_bigrams = Counter(left[index : index + 2] for index in range(len(left) - 1))
    right_bigrams = Counter(right[index : index + 2] for index in range(len(right) - 1))
    overlap = sum((left_bigrams & right_bigrams).values())
    return (2.0 * overlap) / (len(left) - 1 + len(right) - 1)


def source_reliability(source: str | None) -> int:
    return SOURCE_RELIABILITY.get((source or "").strip().lower(), DEFAULT_RELIABILITY)


def hours_between(first: datetime, second: datetime) -> float:
    """
    Absolute distance in hours. A naive datetime compared with an aware one is read as UTC.
    """

    if (first.tzinfo is None) != (second.tzinfo is None):
        first = first if first.tzinfo is not None else first.replace(tzinfo=timezone.utc)
        second = second if second.tzinfo is not None else second.replace(tzinfo=timezone.utc)
    return abs((first - second).total_seconds()) / 3600.0


def is_duplicate(incoming: Event, existing: Event, rules: DuplicateRules) -> bool:
    """
    Same event iff dates fall within the tolerance, titles are similar enough
    and, when both carry a venue, venues are similar enough. Symmetric.
    """

    if hours_between(incoming.date, existing.date) > rules.date_tolerance_hours:
        return False

    title_similarity = _similarity(incoming.title, existing.title)
    if title_similarity < rules.fuzzy_match_threshold:
        return False

    if incoming.venue_name and existing.venue_name:
        if _similarity(incoming.venue_name, existing.venue_name) < rules.venue_match_threshold:
            return False

    return True


def should_update(incoming: Event, existing: Event) -> bool:
    """
    Replace the stored duplicate when the incoming one carries more information
    or comes from a more reliable source.
    """

    incoming_description = len(incoming.description or "")
    existing_description = len(existing.description or "")
    if incoming_description > existing_description * DESCRIPTION_GROWTH_FACTOR:
        return True
    if incoming.image_url and not existing.image_url:
        return True
    if incoming.price is not None and existing.price is None:
        return True
    return source_reliability(incoming.source) > source_reliability(existing.source)


def _similarity(first: str | None, second: str | None) -> float:
    if not first or not second:
        return 0.0
    return dice_coefficient(first.lower(), second.lower())
