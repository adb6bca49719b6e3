"""Source model — a third-party trivia listing site and its scrape state."""

from sqlalchemy import Column, String, Integer, Boolean, DateTime
from sqlalchemy.orm import relationship

from trivia_scraper.models.base import Base, TimestampMixin, UUIDMixin


class Source(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sources"

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    base_url = Column(String(500), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Scrape state
    last_scraped_at = Column(DateTime(timezone=True))
    last_success_at = Column(DateTime(timezone=True))
    last_item_count = Column(Integer, default=0)
    consecutive_failures = Column(Integer, default=0)

    scrape_runs = relationship("ScrapeRun", back_populates="source")
    event_sources = relationship("EventSource", back_populates="source")
