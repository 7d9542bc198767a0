import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from localinsights.features.discovery.models.raw_business_data import RawBusinessData

logger = logging.getLogger(__name__)


def get_raw_record(db: Session, source_id: str, external_id: str) -> Optional[RawBusinessData]:
    return db.execute(
        select(RawBusinessData).where(
            RawBusinessData.source_id == source_id,
            RawBusinessData.external_id == external_id,
        )
    ).scalar_one_or_none()


def upsert_raw_record(db: Session, source_id: str, external_id: str, raw_data: Dict[str, Any]) -> RawBusinessData:
    """
    Insert or refresh the raw record for (source_id, external_id).

    A rediscovered record gets the new payload and goes back to the unprocessed
    state. The caller owns the transaction.
    """
    record = get_raw_record(db, source_id, external_id)

    if record is None:
        record = RawBusinessData(
            source_id=source_id,
            external_id=external_id,
            raw_data=raw_data,
            processed=False,
        )
        db.add(record)
    else:
        logger.debug(f"Refreshing raw record {source_id}/{external_id}")
        record.raw_data = raw_data
        record.processed = False
        record.error = None

    db.flush()
    return record
