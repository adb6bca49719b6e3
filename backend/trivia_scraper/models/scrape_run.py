"""Scrape run model — audit log per index job execution."""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, JSON, Uuid, Index
from sqlalchemy.orm import relationship

from trivia_scraper.models.base import Base, UUIDMixin


class ScrapeRun(UUIDMixin, Base):
    __tablename__ = "scrape_runs"

    source_id = Column(Uuid(as_uuid=True), ForeignKey("sources.id"), nullable=False, index=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))
    success = Column(Boolean)  # null while running
    total_items_found = Column(Integer, default=0, nullable=False)
    items_processed = Column(Integer, default=0, nullable=False)
    error = Column(JSON)  # {"kind": ..., "message": ...}
    run_metadata = Column("metadata", JSON, default=dict)

    source = relationship("Source", back_populates="scrape_runs")

    __table_args__ = (
        Index("idx_run_source_started", "source_id", "started_at"),
    )

    @property
    def status(self) -> str:
        if self.success is None:
            return "running"
        return "success" if self.success else "failed"
