"""
Shared scraping runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from app.domain.events import RawEvent


@dataclass(frozen=True)
class FetchOptions:
    """
    Per-run overrides for a source fetch.
    """

    max_pages: int | None = None
    url: str | None = None


class DataSource(Protocol):
    """
    Anything the orchestrator can fetch raw events from.
    """

    name: str

    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        ...
