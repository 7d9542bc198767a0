import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from localinsights.features.businesses.models.business import Business
from localinsights.features.businesses.schemas.business import BusinessFields

logger = logging.getLogger(__name__)

# Columns owned by the data transformer; score and audit columns are never touched here
IDENTITY_FIELDS = (
    "name", "address", "city", "category", "categories", "phone", "website",
    "status", "hours", "photo_urls", "rating", "rating_count", "raw_data",
)


def get_business_by_identity(db: Session, source_id: str, external_id: str) -> Optional[Business]:
    return db.execute(
        select(Business).where(Business.source_id == source_id, Business.external_id == external_id)
    ).scalar_one_or_none()


def upsert_business(db: Session, source_id: str, external_id: str, fields: BusinessFields) -> Business:
    """Create or refresh the Business identified by (source_id, external_id). Caller commits."""
    business = get_business_by_identity(db, source_id, external_id)
    if business is None:
        business = Business(source_id=source_id, external_id=external_id)
        db.add(business)
        logger.info(f"Creating business {source_id}/{external_id}: {fields.name}")
    else:
        logger.info(f"Updating business {business.id} ({source_id}/{external_id})")

    values = fields.model_dump(include=set(IDENTITY_FIELDS))
    for name, value in values.items():
        if name == "website" and value is None and business.website:
            # Keep a website already confirmed by an audit
            continue
        setattr(business, name, value)

    business.latitude = fields.location.lat if fields.location else None
    business.longitude = fields.location.lng if fields.location else None

    db.flush()
    return business
