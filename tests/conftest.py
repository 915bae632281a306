"""
tests/conftest.py

Shared fixtures for scraper, pipeline and service tests.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from app.domain.events import Event
from app.scraping.rate_limiter import DomainRateLimiter


@pytest.fixture()
def no_sleep() -> Callable[[float], None]:
    return lambda seconds: None


@pytest.fixture()
def rate_limiter(no_sleep: Callable[[float], None]) -> DomainRateLimiter:
    return DomainRateLimiter(default_rate_limit_per_second=100.0, sleep=no_sleep)


@pytest.fixture()
def make_event() -> Callable[..., Event]:
    def factory(**overrides: Any) -> Event:
        values: dict[str, Any] = {
            "id": "evt-1",
            "title": "Metallica World Tour 2025",
            "date": datetime(2030, 3, 15, 21, 0, tzinfo=timezone.utc),
            "city": "Buenos Aires",
            "country": "AR",
            "category": "Concert",
            "source": "livepass",
            "venue_name": "Estadio River Plate",
        }
        values.update(overrides)
        return Event(**values)

    return factory
