"""
BeautifulSoup-based parsing layer for event pages.

Field selectors use `css@attribute` syntax. A bare `@attribute` (or
`self@attribute`) reads the attribute from the item root itself, and a
comma-separated list is tried left to right.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag

from app.scraping.transforms import TransformKind, clean_whitespace

SELF_ELEMENT = "self"
ATTRIBUTE_MARKER = "@"

_ATTRIBUTE_NAME = re.compile(r"^[\w:-]+$")
_STRUCTURED_EVENT_TYPES = ("Event", "Festival")


@dataclass(frozen=True)
class SelectorAlternative:
    """
    One `css@attribute` alternative. `css=None` targets the item root.
    """

    css: str | None
    attribute: str | None = None

    def elements(self, root: Tag) -> list[Tag]:
        if self.css is None:
            return [root]
        return list(root.select(self.css))

    def read(self, element: Tag, *, html: bool = False) -> str | None:
        if self.attribute is not None:
            value = element.get(self.attribute)
            if isinstance(value, list):
                value = " ".join(value)
            return clean_whitespace(value) if isinstance(value, str) else None
        if html:
            return element.decode_contents().strip() or None
        return clean_whitespace(element.get_text(" "))


@dataclass(frozen=True)
class FieldResolver:
    """
    Compiled extraction rule for one event field.
    """

    name: str
    alternatives: tuple[SelectorAlternative, ...] = ()
    default: str | None = None
    transform: TransformKind | None = None

    @property
    def has_selector(self) -> bool:
        return bool(self.alternatives)

    @property
    def reads_html(self) -> bool:
        return self.transform is TransformKind.SANITIZE_HTML

    def candidates(self, root: Tag) -> list[str]:
        """
        Every non-empty value matched by any alternative, in document order per alternative.
        """

        values: list[str] = []
        for alternative in self.alternatives:
            for element in alternative.elements(root):
                value = alternative.read(element, html=self.reads_html)
                if value:
                    values.append(value)
        return values

    def raw_value(self, root: Tag) -> str | None:
        """
        First matched value, or the configured default.
        """

        for alternative in self.alternatives:
            for element in alternative.elements(root):
                value = alternative.read(element, html=self.reads_html)
                if value:
                    return value
        return self.default


def split_selector_list(selector: str) -> list[str]:
    """
    Split a selector list on top-level commas, ignoring commas inside brackets or quotes.
    """

    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    for char in selector:
        if quote is not None:
            if char == quote:
                quote = None
        elif char in {'"', "'"}:
            quote = char
        elif char in "[(":
            depth += 1
        elif char in "])":
            depth = max(0, depth - 1)
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def parse_selector_alternative(raw: str) -> SelectorAlternative:
    css = raw.strip()
    attribute: str | None = None
    if ATTRIBUTE_MARKER in css:
        head, tail = css.rsplit(ATTRIBUTE_MARKER, 1)
        if _ATTRIBUTE_NAME.match(tail.strip()):
            css, attribute = head.strip(), tail.strip().lower()
    if not css or css.lower() == SELF_ELEMENT:
        return SelectorAlternative(css=None, attribute=attribute)
    return SelectorAlternative(css=css, attribute=attribute)


def compile_field(
    *,
    name: str,
    selector: str | None,
    default: str | None = None,
    transform: TransformKind | None = None,
) -> FieldResolver:
    """
    Build a FieldResolver once at config-load time.
    """

    alternatives: tuple[SelectorAlternative, ...] = ()
    if selector and selector.strip():
        alternatives = tuple(
            parse_selector_alternative(part) for part in split_selector_list(selector)
        )
    return FieldResolver(
        name=name,
        alternatives=alternatives,
        default=default,
        transform=transform,
    )


class HTMLParsingLayer:
    """
    Deterministic parser utilities for listing and detail documents.
    """

    @staticmethod
    def parse(markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    @classmethod
    def select_items(
        cls,
        *,
        soup: BeautifulSoup,
        item_selector: str,
        container_selector: str | None = None,
    ) -> list[Tag]:
        scope: Tag = soup
        if container_selector:
            container = soup.select_one(container_selector)
            if container is not None:
                scope = container
        return list(scope.select(item_selector))

    @classmethod
    def extract_structured_event(cls, soup: BeautifulSoup) -> dict[str, Any] | None:
        """
        Read the first schema.org Event from JSON-LD scripts, keyed by event field names.
        """

        for tag in soup.select('script[type="application/ld+json"]'):
            try:
                data = json.loads(tag.string or "")
            except ValueError:
                continue
            for node in cls._iter_json_ld_nodes(data):
                if cls._is_event_node(node):
                    mapped = cls._map_structured_event(node)
                    if mapped:
                        return mapped
        return None

    @classmethod
    def _iter_json_ld_nodes(cls, data: Any) -> list[dict[str, Any]]:
        nodes: list[dict[str, Any]] = []
        if isinstance(data, list):
            for item in data:
                nodes.extend(cls._iter_json_ld_nodes(item))
        elif isinstance(data, dict):
            nodes.append(data)
            graph = data.get("@graph")
            if isinstance(graph, list):
                nodes.extend(node for node in graph if isinstance(node, dict))
        return nodes

    @staticmethod
    def _is_event_node(node: dict[str, Any]) -> bool:
        raw_type = node.get("@type")
        types = raw_type if isinstance(raw_type, list) else [raw_type]
        return any(
            isinstance(item, str) and item.endswith(_STRUCTURED_EVENT_TYPES)
            for item in types
        )

    @classmethod
    def _map_structured_event(cls, node: dict[str, Any]) -> dict[str, Any]:
        mapped: dict[str, Any] = {
            "title": cls._clean_text(node.get("name")),
            "date": cls._clean_text(node.get("startDate")),
            "end_date": cls._clean_text(node.get("endDate")),
            "description": cls._clean_text(node.get("description")),
            "image": cls._first_image(node.get("image")),
        }

        location = node.get("location")
        if isinstance(location, list):
            location = location[0] if location else None
        if isinstance(location, dict):
            mapped["venue"] = cls._clean_text(location.get("name"))
            address = location.get("address")
            if isinstance(address, dict):
                mapped["address"] = cls._clean_text(address.get("streetAddress"))
                mapped["city"] = cls._clean_text(address.get("addressLocality"))
                mapped["country"] = cls._clean_text(
                    cls._country_name(address.get("addressCountry"))
                )
            elif isinstance(address, str):
                mapped["address"] = cls._clean_text(address)
        elif isinstance(location, str):
            mapped["venue"] = cls._clean_text(location)

        offers = node.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        if isinstance(offers, dict):
            low = offers.get("lowPrice", offers.get("price"))
            high = offers.get("highPrice")
            mapped["price"] = None if low is None else str(low)
            mapped["price_max"] = None if high is None else str(high)
            mapped["currency"] = cls._clean_text(offers.get("priceCurrency"))

        return {key: value for key, value in mapped.items() if value not in (None, "")}

    @staticmethod
    def _country_name(value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("name")
        return value

    @classmethod
    def _first_image(cls, value: Any) -> str | None:
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict):
            value = value.get("url")
        return cls._clean_text(value)

    @staticmethod
    def _clean_text(value: Any) -> str | None:
        if value is None or not isinstance(value, (str, int, float)):
            return None
        return clean_whitespace(str(value))
