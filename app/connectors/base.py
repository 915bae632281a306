"""
app/connectors/base.py

Base class for API-backed event sources and their shared HTTP mechanics.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import requests

from app.config import ExternalHTTPSettings
from app.domain.events import RawEvent
from app.scraping.types import FetchOptions

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


class ConnectorRequestError(RuntimeError):
    """
    Raised when an API source cannot be fetched.

    `status_code` is set when the failure came from an HTTP response.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BaseConnector(ABC):
    """
    Event source backed by a JSON HTTP API.

    Subclasses set `name` and implement `fetch()`; `_get_json()` handles
    request pacing, retries on transient failures and JSON decoding.
    """

    name: str

    def __init__(
        self,
        *,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
        sleep=time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._settings = http_settings
        self._sleep = sleep
        self._min_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_at: float | None = None

    @abstractmethod
    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        """
        Fetch events and map them to raw events.
        """

    def describe_status_error(self, status_code: int) -> str:
        """
        Message for a non-retryable HTTP status. Subclasses specialize known codes.
        """

        return f"{self.name}: request failed with HTTP {status_code}."

    def _get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        response = self._request(url, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(f"{self.name}: response was not valid JSON.") from exc

    def _request(self, url: str, *, params: dict[str, Any] | None = None) -> requests.Response:
        last_error: Exception | None = None
        attempts = self._settings.max_retries + 1
        for attempt in range(attempts):
            self._pace()
            try:
                response = self._session.get(url, params=params, timeout=self._settings.timeout_seconds)
            except requests.Timeout as exc:
                last_error = ConnectorRequestError(
                    f"{self.name}: request timed out after {self._settings.timeout_seconds}s."
                )
                last_error.__cause__ = exc
            except requests.ConnectionError as exc:
                last_error = ConnectorRequestError(f"{self.name}: connection failed: {exc}")
                last_error.__cause__ = exc
            else:
                status = response.status_code
                if status < 400:
                    return response
                if status not in RETRYABLE_STATUS_CODES:
                    logger.error("Connector request failed source=%s status=%s url=%s", self.name, status, url)
                    raise ConnectorRequestError(self.describe_status_error(status), status_code=status)
                last_error = ConnectorRequestError(
                    f"{self.name}: request failed with HTTP {status}.", status_code=status
                )

            if attempt + 1 >= attempts:
                break
            delay = self._settings.backoff_initial_seconds * (self._settings.backoff_multiplier**attempt)
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f error=%s",
                self.name,
                attempt + 1,
                self._settings.max_retries,
                delay,
                last_error,
            )
            self._sleep(delay)

        logger.error("Connector request exhausted retries source=%s url=%s error=%s", self.name, url, last_error)
        assert last_error is not None
        raise last_error

    def _pace(self) -> None:
        if self._min_interval_seconds <= 0:
            return
        now = time.monotonic()
        if self._last_request_at is not None:
            remaining = self._min_interval_seconds - (now - self._last_request_at)
            if remaining > 0:
                self._sleep(remaining)
        self._last_request_at = time.monotonic()
