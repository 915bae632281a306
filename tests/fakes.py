"""
tests/fakes.py

HTTP doubles shared by scraper and connector tests.
"""

from __future__ import annotations

from typing import Any

import requests


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, payload: Any = None) -> None:
        self.text = text
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """
    URL -> response table. Unknown URLs answer 404. Every requested URL is recorded.
    """

    def __init__(self, pages: dict[str, FakeResponse | str] | None = None) -> None:
        self.pages = dict(pages or {})
        self.requested: list[str] = []
        self.params: list[dict[str, Any] | None] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requested.append(url)
        self.params.append(kwargs.get("params"))
        page = self.pages.get(url)
        if page is None:
            return FakeResponse(status_code=404)
        if isinstance(page, str):
            return FakeResponse(text=page)
        return page
