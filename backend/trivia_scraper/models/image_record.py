"""Stored image tied to an owning entity."""

from sqlalchemy import Column, String, DateTime, Text, UniqueConstraint, Index

from trivia_scraper.models.base import Base, UUIDMixin


class ImageRecord(UUIDMixin, Base):
    __tablename__ = "image_records"

    owner_type = Column(String(50), nullable=False)  # event, performer, venue
    owner_id = Column(String(64), nullable=False)
    role = Column(String(20), nullable=False)  # hero, profile, place_photo

    source_url = Column(Text, nullable=False)
    normalized_filename = Column(String(255), nullable=False)
    stored_path = Column(Text, nullable=False)
    fetched_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", "normalized_filename", name="uq_image_owner_filename"),
        Index("idx_image_owner_role", "owner_type", "owner_id", "role"),
    )
