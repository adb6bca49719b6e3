"""Quizmaster hosting an event."""

from sqlalchemy import Column, String, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from trivia_scraper.models.base import Base, TimestampMixin, UUIDMixin


class Performer(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "performers"

    name = Column(String(255), nullable=False)
    source_id = Column(Uuid(as_uuid=True), ForeignKey("sources.id"), nullable=False, index=True)

    profile_image_url = Column(Text)
    profile_image_path = Column(Text)

    events = relationship("Event", back_populates="performer")

    __table_args__ = (
        UniqueConstraint("name", "source_id", name="uq_performer_name_source"),
    )
