"""
Domain-aware request rate limiter.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from urllib.parse import urlparse


class DomainRateLimiter:
    """
    Enforces minimum interval between requests per domain.

    Slots are reserved under the lock and slept outside it, so one throttled
    domain never delays callers targeting another.
    """

    def __init__(
        self,
        *,
        default_rate_limit_per_second: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._default_rate_limit_per_second = max(0.1, default_rate_limit_per_second)
        self._next_slot_by_domain: dict[str, float] = {}
        self._lock = threading.Lock()
        self._sleep = sleep

    def wait(
        self,
        *,
        url: str,
        rate_limit_per_second: float | None = None,
    ) -> float:
        """
        Sleep as needed so outbound requests respect per-domain throttling.

        Returns the seconds waited.
        """

        parsed = urlparse(url)
        domain = parsed.netloc.lower() or parsed.path.lower()
        if not domain:
            return 0.0

        effective_rps = max(
            0.1,
            rate_limit_per_second or self._default_rate_limit_per_second,
        )
        min_interval = 1.0 / effective_rps

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot_by_domain.get(domain, 0.0))
            self._next_slot_by_domain[domain] = slot + min_interval

        wait_seconds = slot - now
        if wait_seconds > 0:
            self._sleep(wait_seconds)
        return max(0.0, wait_seconds)
