"""
Extraction of event cards from JSON embedded in a page script call.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

GRID_WIDGET = "Grid"
MOBILE_ONLY_VISIBILITY = "show_mobile"


def extract_embedded_payload(markup: str, *, script_pattern: str) -> dict[str, Any]:
    """
    Find the JSON argument of the configured script call and decode it.

    Raises ValueError when the call is absent or its payload is not a JSON object.
    """

    match = re.search(script_pattern, markup)
    if match is None or not match.group(1).strip():
        raise ValueError("Embedded JSON call not found in page.")
    try:
        payload = json.loads(match.group(1).strip())
    except ValueError as exc:
        raise ValueError(f"Embedded JSON could not be decoded: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Embedded JSON payload is not an object.")
    return payload


def collect_event_cards(payload: dict[str, Any], *, link_keywords: tuple[str, ...]) -> list[dict[str, Any]]:
    """
    Cards from enabled, non-mobile-only grid widgets whose link points at an event.

    Cards repeated across widgets are kept once, first occurrence wins.
    """

    model = payload.get("model") if isinstance(payload.get("model"), dict) else {}
    data = model.get("data") if isinstance(model.get("data"), dict) else {}
    widgets = data.get("widgetComponents")
    if not isinstance(widgets, list):
        log_event(logger, logging.WARNING, "embedded_widgets_missing")
        return []

    cards: list[dict[str, Any]] = []
    seen_links: set[str] = set()
    for widget in widgets:
        if not isinstance(widget, dict) or widget.get("widgetType") != GRID_WIDGET:
            continue
        state = widget.get("state") if isinstance(widget.get("state"), dict) else {}
        if not state.get("enabled"):
            continue
        config = state.get("config") if isinstance(state.get("config"), dict) else {}
        if config.get("deviceVisibility") == MOBILE_ONLY_VISIBILITY:
            continue

        raw_cards = state.get("cards")
        if not isinstance(raw_cards, list):
            continue
        for card in raw_cards:
            if not isinstance(card, dict):
                continue
            link = card.get("link")
            if not isinstance(link, str) or not any(keyword in link for keyword in link_keywords):
                continue
            if link in seen_links:
                continue
            seen_links.add(link)
            cards.append(card)

    return cards


def title_from_link(link: str) -> str:
    """
    "/event/los-piojos-en-river" -> "Los Piojos En River".
    """

    match = re.search(r"/(?:event|page)/([^/?#]+)", link)
    if match is None:
        return "Untitled Event"
    return " ".join(word[:1].upper() + word[1:] for word in match.group(1).split("-") if word)
