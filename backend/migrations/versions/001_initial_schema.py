"""Initial schema: sources, scrape_runs, venues, performers, events, event_sources, image_records.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Sources
    op.create_table(
        "sources",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), unique=True, nullable=False, index=True),
        sa.Column("base_url", sa.String(500), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("last_scraped_at", sa.DateTime(timezone=True)),
        sa.Column("last_success_at", sa.DateTime(timezone=True)),
        sa.Column("last_item_count", sa.Integer, server_default=sa.text("0")),
        sa.Column("consecutive_failures", sa.Integer, server_default=sa.text("0")),
        *_timestamps(),
    )

    # Scrape runs
    op.create_table(
        "scrape_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sources.id"), nullable=False, index=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("success", sa.Boolean),
        sa.Column("total_items_found", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("items_processed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("error", postgresql.JSONB),
        sa.Column("metadata", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("idx_run_source_started", "scrape_runs", ["source_id", "started_at"])

    # Venues
    op.create_table(
        "venues",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text, nullable=False),
        sa.Column("postcode", sa.String(20)),
        sa.Column("phone", sa.String(50)),
        sa.Column("website", sa.String(500)),
        sa.Column("facebook", sa.String(500)),
        sa.Column("instagram", sa.String(500)),
        sa.Column("latitude", sa.Float),
        sa.Column("longitude", sa.Float),
        sa.Column("google_place_id", sa.String(255)),
        sa.Column("google_place_images_updated_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint("name", "address", name="uq_venue_name_address"),
    )
    op.create_index("idx_venue_geo", "venues", ["latitude", "longitude"])

    # Performers
    op.create_table(
        "performers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sources.id"), nullable=False, index=True),
        sa.Column("profile_image_url", sa.Text),
        sa.Column("profile_image_path", sa.Text),
        *_timestamps(),
        sa.UniqueConstraint("name", "source_id", name="uq_performer_name_source"),
    )

    # Events
    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("venue_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("venues.id"), nullable=False, index=True),
        sa.Column("performer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("performers.id"), index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("day_of_week", sa.Integer),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("frequency", sa.String(20), nullable=False, server_default="weekly"),
        sa.Column("fee_text", sa.String(255)),
        sa.Column("description", sa.Text),
        sa.Column("hero_image_url", sa.Text),
        *_timestamps(),
        sa.UniqueConstraint("venue_id", "day_of_week", name="uq_event_venue_day"),
    )

    # Event sources
    op.create_table(
        "event_sources",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id"), nullable=False, index=True),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sources.id"), nullable=False, index=True),
        sa.Column("source_url", sa.Text, nullable=False),
        sa.Column("extra_data", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("source_id", "source_url", name="uq_event_source_url"),
    )
    op.create_index("idx_event_source_event", "event_sources", ["event_id", "source_id"])
    op.create_index("idx_event_source_last_seen", "event_sources", ["source_id", "last_seen_at"])

    # Image records
    op.create_table(
        "image_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_type", sa.String(50), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("source_url", sa.Text, nullable=False),
        sa.Column("normalized_filename", sa.String(255), nullable=False),
        sa.Column("stored_path", sa.Text, nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_type", "owner_id", "normalized_filename", name="uq_image_owner_filename"),
    )
    op.create_index("idx_image_owner_role", "image_records", ["owner_type", "owner_id", "role"])


def downgrade() -> None:
    op.drop_table("image_records")
    op.drop_table("event_sources")
    op.drop_table("events")
    op.drop_table("performers")
    op.drop_table("venues")
    op.drop_table("scrape_runs")
    op.drop_table("sources")
