from typing import Any, Dict

from kombu.exceptions import OperationalError

from localinsights.platform.celery_app import celery_app
from localinsights.platform.config import settings
from localinsights.platform.logger import get_logger
from localinsights.workers import dependencies, events  # noqa: F401
from localinsights.workers.job import JobType
from localinsights.workers.orchestrator import PipelineTask, enqueue_raw_data_processing, enqueue_website_audit

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="localinsights.workers.tasks.grid_search",
    job_type=JobType.GRID_SEARCH,
)
def grid_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Discover businesses inside one grid tile and queue each raw record for processing."""
    result = self.run_job(payload, lambda job: dependencies.get_grid_search_processor().process(job))

    if settings.AUTO_ENQUEUE_FOLLOWUPS:
        try:
            for raw_record_id in result.raw_record_ids:
                enqueue_raw_data_processing(raw_record_id)
        except OperationalError as e:
            # Raw records stay unprocessed and can be picked up again
            logger.error(f"[{self.request.id}] Failed to enqueue raw data processing: {e}", exc_info=True)

    return result.model_dump()


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="localinsights.workers.tasks.process_raw_data",
    job_type=JobType.PROCESS_RAW_DATA,
)
def process_raw_data(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Transform one raw record into a Business and queue an audit when it has a website."""
    result = self.run_job(payload, lambda job: dependencies.get_data_processing_processor().process(job))

    if settings.AUTO_ENQUEUE_FOLLOWUPS and not result.skipped and result.business_id and result.website:
        try:
            enqueue_website_audit(result.business_id, result.website)
        except OperationalError as e:
            logger.error(f"[{self.request.id}] Failed to enqueue website audit: {e}", exc_info=True)

    return result.model_dump()


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="localinsights.workers.tasks.audit_website",
    job_type=JobType.AUDIT_WEBSITE,
)
def audit_website(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Audit a business website and store the scored snapshot."""
    result = self.run_job(payload, lambda job: dependencies.get_website_audit_processor().process(job))
    return result.model_dump(by_alias=True)
