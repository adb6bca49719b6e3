"""Venue model — a pub or bar hosting a recurring trivia night."""

from sqlalchemy import Column, String, Float, DateTime, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from trivia_scraper.models.base import Base, TimestampMixin, UUIDMixin


class Venue(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "venues"

    # Natural key
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)

    postcode = Column(String(20))
    phone = Column(String(50))
    website = Column(String(500))
    facebook = Column(String(500))
    instagram = Column(String(500))

    # Geocoding
    latitude = Column(Float)
    longitude = Column(Float)

    # Google place photos, refreshed on a 90-day window
    google_place_id = Column(String(255))
    google_place_images_updated_at = Column(DateTime(timezone=True))

    events = relationship("Event", back_populates="venue")

    __table_args__ = (
        UniqueConstraint("name", "address", name="uq_venue_name_address"),
        Index("idx_venue_geo", "latitude", "longitude"),
    )
