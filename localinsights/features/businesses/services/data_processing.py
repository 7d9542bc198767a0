import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from localinsights.features.businesses.schemas.business import DataProcessingJobPayload, DataProcessingResult
from localinsights.features.businesses.services.business_store import get_business_by_identity, upsert_business
from localinsights.features.businesses.services.data_transformer import transform_business_data
from localinsights.features.discovery.models.raw_business_data import RawBusinessData
from localinsights.platform.db.session import SessionFactory
from localinsights.platform.exceptions import DatabaseError, ValidationError
from localinsights.workers.job import Job, parse_payload

logger = logging.getLogger(__name__)


class DataProcessingProcessor:
    """
    Turns one raw record into a canonical Business.

    A record already marked processed is skipped for a fresh job; only a retry
    attempt of the job that processed it may run it again.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def process(self, job: Job) -> DataProcessingResult:
        payload = parse_payload(DataProcessingJobPayload, job.payload)
        record_id = payload.raw_record_id
        log_prefix = f"[{job.id}]"

        with self.session_factory() as db:
            try:
                record = db.get(RawBusinessData, record_id)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Database Error: failed to fetch raw business data {record_id}: {e}") from e

            if record is None:
                raise ValidationError(f"Raw business data with ID {record_id} not found")

            if record.processed and not job.is_retry:
                logger.info(f"{log_prefix} Raw record {record_id} already processed, skipping")
                existing = get_business_by_identity(db, record.source_id, record.external_id)
                return DataProcessingResult(
                    raw_record_id=record_id,
                    business_id=existing.id if existing else None,
                    website=existing.website if existing else None,
                    skipped=True,
                )

            logger.info(f"{log_prefix} Processing raw record {record_id} from {record.source_id}")
            fields = transform_business_data(record.source_id, record.raw_data)

            try:
                business = upsert_business(db, record.source_id, record.external_id, fields)
                record.processed = True
                record.error = None
                db.commit()
                result = DataProcessingResult(
                    raw_record_id=record_id,
                    business_id=business.id,
                    website=business.website,
                )
            except SQLAlchemyError as e:
                db.rollback()
                message = f"Database Error: {e}"
                logger.error(f"{log_prefix} Failed to save business for raw record {record_id}: {e}")
                self._mark_failed(record_id, message)
                raise DatabaseError(message) from e

        logger.info(f"{log_prefix} Raw record {record_id} saved as business {result.business_id}")
        return result

    def _mark_failed(self, record_id: str, message: str) -> None:
        try:
            with self.session_factory() as db:
                db.execute(
                    update(RawBusinessData)
                    .where(RawBusinessData.id == record_id)
                    .values(processed=True, error=message)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark raw record {record_id} as failed: {e}")
