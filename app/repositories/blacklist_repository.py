"""
app/repositories/blacklist_repository.py

SQLAlchemy-backed event blacklist.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.event_blacklist import EventBlacklistEntry

logger = logging.getLogger(__name__)


class SQLAlchemyBlacklistRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def is_blacklisted(self, source: str, external_id: str) -> bool:
        """
        Lookup errors are logged and reported as not blacklisted.
        """

        if not external_id:
            return False
        statement = (
            select(EventBlacklistEntry.id)
            .where(
                EventBlacklistEntry.source == source,
                EventBlacklistEntry.external_id == external_id,
            )
            .limit(1)
        )
        try:
            with self._session.begin_nested():
                return self._session.scalar(statement) is not None
        except SQLAlchemyError as exc:
            logger.warning(
                "Blacklist lookup failed source=%s external_id=%s error=%s",
                source,
                external_id,
                exc,
            )
            return False

    def add_to_blacklist(self, source: str, external_id: str, reason: str | None = None) -> None:
        statement = (
            insert(EventBlacklistEntry)
            .values(source=source, external_id=external_id, reason=reason)
            .on_conflict_do_nothing(constraint="uq_event_blacklist_source_external_id")
        )
        self._session.execute(statement)

    def clear_all(self) -> int:
        result = self._session.execute(delete(EventBlacklistEntry))
        return int(result.rowcount or 0)
