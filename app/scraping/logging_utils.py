"""
JSON log lines for scraping and orchestration.
"""

from __future__ import annotations

import json
import logging
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Log `event` plus the non-None fields as one JSON object.

    Non-ASCII text (Spanish titles, venues) is kept readable.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update({key: value for key, value in fields.items() if value is not None})
    logger.log(level, json.dumps(payload, default=str, sort_keys=True, ensure_ascii=False))
