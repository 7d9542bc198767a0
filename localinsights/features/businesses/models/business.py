from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, UniqueConstraint, Index

from localinsights.platform.db.base import BaseModel


class Business(BaseModel):
    """
    Canonical business record.

    Identity fields are written by the data transformer; score and audit fields
    only by the website audit processor.
    """

    __tablename__ = "businesses"

    # Identity
    source_id = Column(String(64), nullable=False)
    external_id = Column(String(255), nullable=False)

    name = Column(String(512), nullable=False)
    address = Column(String(1024), nullable=True)
    city = Column(String(255), nullable=True, index=True)
    category = Column(String(128), nullable=True, index=True)
    categories = Column(JSON, nullable=False, default=list)
    phone = Column(String(64), nullable=True)
    website = Column(String(2048), nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(String(64), nullable=True)
    hours = Column(JSON, nullable=True)
    photo_urls = Column(JSON, nullable=False, default=list)
    rating = Column(Float, nullable=True)
    rating_count = Column(Integer, default=0, nullable=False)

    raw_data = Column(JSON, nullable=True)

    # Audit
    overall_score = Column(Integer, nullable=True)
    latest_audit_id = Column(String, nullable=True)
    last_scanned = Column(DateTime(timezone=True), nullable=True)
    audit_error = Column(Text, nullable=True)

    @property
    def location(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {"lat": self.latitude, "lng": self.longitude}

    __table_args__ = (
        UniqueConstraint("source_id", "external_id", name="uq_businesses_source_external"),
        Index("idx_businesses_overall_score", "overall_score"),
    )
