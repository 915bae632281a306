"""
Headless browser handle for JavaScript-rendered sources.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from playwright.sync_api import Browser, Playwright, sync_playwright

from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)


class PageRenderer(Protocol):
    def render(
        self,
        url: str,
        *,
        wait_for_selector: str | None = None,
        timeout_seconds: float = 30.0,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        ...


class BrowserHandle:
    """
    Lazily launched Chromium instance shared by rendering sources.

    Playwright's sync API is bound to the thread that started it, so every
    call runs on one dedicated worker thread; concurrent callers queue there.
    The owner must call `close()` (or use the handle as a context manager).
    """

    def __init__(self, *, headless: bool = True) -> None:
        self._headless = headless
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser")
        self._lock = threading.Lock()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._closed = False

    @property
    def started(self) -> bool:
        return self._browser is not None

    def render(
        self,
        url: str,
        *,
        wait_for_selector: str | None = None,
        timeout_seconds: float = 30.0,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """
        Load a page, optionally wait for a selector, and return the rendered HTML.
        """

        with self._lock:
            if self._closed:
                raise RuntimeError("Browser handle is closed.")
            future = self._executor.submit(
                self._render,
                url,
                wait_for_selector,
                timeout_seconds,
                user_agent,
                headers or {},
            )
        return future.result()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            future = self._executor.submit(self._shutdown)
        try:
            future.result()
        finally:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "BrowserHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_browser(self) -> Browser:
        if self._browser is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self._headless)
            log_event(logger, logging.INFO, "browser_launched", headless=self._headless)
        return self._browser

    def _render(
        self,
        url: str,
        wait_for_selector: str | None,
        timeout_seconds: float,
        user_agent: str | None,
        headers: dict[str, str],
    ) -> str:
        browser = self._ensure_browser()
        timeout_ms = timeout_seconds * 1000
        context = browser.new_context(user_agent=user_agent, extra_http_headers=headers)
        try:
            page = context.new_page()
            page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            if wait_for_selector:
                page.wait_for_selector(wait_for_selector, timeout=timeout_ms)
            return page.content()
        finally:
            context.close()

    def _shutdown(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
            log_event(logger, logging.INFO, "browser_closed")
