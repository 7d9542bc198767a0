import enum

from sqlalchemy import Column, String, Integer, DateTime, Text, Enum

from localinsights.platform.db.base import BaseModel


class ScraperRunStatus(enum.Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class ScraperRun(BaseModel):
    """Progress tracker for one discovery campaign across many grid tiles."""

    __tablename__ = "scraper_runs"

    status = Column(Enum(ScraperRunStatus), default=ScraperRunStatus.pending, nullable=False, index=True)
    location = Column(String(255), nullable=False)
    category = Column(String(128), nullable=True)

    grids_total = Column(Integer, default=0, nullable=False)
    grids_completed = Column(Integer, default=0, nullable=False)
    businesses_found = Column(Integer, default=0, nullable=False)

    error = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
