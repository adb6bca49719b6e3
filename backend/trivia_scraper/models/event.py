"""Event and EventSource models.

An Event is the recurring trivia night at a venue. An EventSource records
which source listed the event and when it was last seen there.
"""

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, JSON, Uuid, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from trivia_scraper.models.base import Base, TimestampMixin, UUIDMixin


class Event(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "events"

    venue_id = Column(Uuid(as_uuid=True), ForeignKey("venues.id"), nullable=False, index=True)
    performer_id = Column(Uuid(as_uuid=True), ForeignKey("performers.id"), index=True)

    name = Column(String(255), nullable=False)
    day_of_week = Column(Integer)  # 1-7, Monday = 1
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    frequency = Column(String(20), default="weekly", nullable=False)
    fee_text = Column(String(255))
    description = Column(Text)
    hero_image_url = Column(Text)

    venue = relationship("Venue", back_populates="events")
    performer = relationship("Performer", back_populates="events")
    event_sources = relationship("EventSource", back_populates="event")

    __table_args__ = (
        UniqueConstraint("venue_id", "day_of_week", name="uq_event_venue_day"),
    )


class EventSource(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "event_sources"

    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id"), nullable=False, index=True)
    source_id = Column(Uuid(as_uuid=True), ForeignKey("sources.id"), nullable=False, index=True)

    source_url = Column(Text, nullable=False)  # normalized
    extra_data = Column(JSON, default=dict)

    # Freshness: written on every scrape touch, never conditionally
    last_seen_at = Column(DateTime(timezone=True), nullable=False)

    event = relationship("Event", back_populates="event_sources")
    source = relationship("Source", back_populates="event_sources")

    __table_args__ = (
        UniqueConstraint("source_id", "source_url", name="uq_event_source_url"),
        Index("idx_event_source_event", "event_id", "source_id"),
        Index("idx_event_source_last_seen", "source_id", "last_seen_at"),
    )
