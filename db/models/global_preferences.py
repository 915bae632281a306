"""
db/models/global_preferences.py

Single-row store for catalog-wide acceptance preferences.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin

SINGLETON_ID = "singleton"


class GlobalPreferencesRecord(Base, TimestampMixin):
    __tablename__ = "global_preferences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=SINGLETON_ID)
    allowed_countries: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    allowed_cities: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    allowed_genres: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    blocked_genres: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    allowed_categories: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    allowed_venue_sizes: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        comment="small, medium, large",
    )
    needs_rescraping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
