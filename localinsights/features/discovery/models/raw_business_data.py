from sqlalchemy import Column, String, Boolean, Text, JSON, UniqueConstraint, Index

from localinsights.platform.db.base import BaseModel


class RawBusinessData(BaseModel):
    """
    Unprocessed provider payload awaiting transformation.

    Keyed by (source_id, external_id): rediscovery updates the payload in place.
    """

    __tablename__ = "raw_business_data"

    source_id = Column(String(64), nullable=False)
    external_id = Column(String(255), nullable=False)
    raw_data = Column(JSON, nullable=False, default=dict)

    processed = Column(Boolean, default=False, nullable=False)
    error = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("source_id", "external_id", name="uq_raw_business_data_source_external"),
        Index("idx_raw_business_data_processed", "processed"),
    )
