from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Index

from localinsights.platform.db.base import BaseModel


class WebsiteAudit(BaseModel):
    """
    One timestamped run of the audit pipeline against a business website.

    Rows are append-only; a business accumulates its audit history here.
    """

    __tablename__ = "website_audits"

    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(2048), nullable=False)

    # performance, accessibility, bestPractices, seo, mobile, technical, overall
    scores = Column(JSON, nullable=False)
    screenshots = Column(JSON, nullable=False, default=dict)
    technology_stack = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)

    desktop_metrics = Column(JSON, nullable=True)
    mobile_metrics = Column(JSON, nullable=True)
    device_comparison = Column(JSON, nullable=True)

    audit_date = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("idx_website_audits_business_date", "business_id", "audit_date"),
    )
