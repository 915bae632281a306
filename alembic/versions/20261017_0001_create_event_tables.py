"""create events, event_blacklist and global_preferences tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("venue_name", sa.String(length=255), nullable=True),
        sa.Column("venue_address", sa.String(length=500), nullable=True),
        sa.Column("venue_capacity", sa.Integer(), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("country", sa.String(length=8), nullable=False, comment="ISO 3166-1 alpha-2"),
        sa.Column(
            "category",
            sa.String(length=32),
            nullable=False,
            comment="Concert, Festival, Theater, StandUp, Opera, Ballet, Other",
        ),
        sa.Column("genre", sa.String(length=120), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("price_max", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("ticket_url", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source", "external_id", name="uq_events_source_external_id"),
    )
    op.create_index("ix_events_date", "events", ["date"], unique=False)
    op.create_index("ix_events_city", "events", ["city"], unique=False)
    op.create_index("ix_events_category", "events", ["category"], unique=False)

    op.create_table(
        "event_blacklist",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source", "external_id", name="uq_event_blacklist_source_external_id"),
    )

    op.create_table(
        "global_preferences",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("allowed_countries", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("allowed_cities", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("allowed_genres", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("blocked_genres", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("allowed_categories", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "allowed_venue_sizes",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="small, medium, large",
        ),
        sa.Column("needs_rescraping", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("global_preferences")
    op.drop_table("event_blacklist")
    op.drop_index("ix_events_category", table_name="events")
    op.drop_index("ix_events_city", table_name="events")
    op.drop_index("ix_events_date", table_name="events")
    op.drop_table("events")
