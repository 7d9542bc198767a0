"""
Job lifecycle events.

Celery emits a signal on every transition of a pipeline task; these handlers
log them and record terminal failures on the owning rows (ScraperRun for grid
searches, Business for audits). Raw records record their own errors.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from celery.signals import task_failure, task_prerun, task_retry, task_success
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from localinsights.features.businesses.models.business import Business
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus
from localinsights.platform.db.session import SessionFactory, get_session_factory
from localinsights.workers.job import JobType
from localinsights.workers.orchestrator import TASK_NAMES

logger = logging.getLogger(__name__)

JOB_TYPES_BY_TASK = {name: job_type for job_type, name in TASK_NAMES.items()}


def _job_type(sender) -> Optional[JobType]:
    return JOB_TYPES_BY_TASK.get(getattr(sender, "name", None))


def _payload(args) -> Dict[str, Any]:
    if args and isinstance(args[0], dict):
        return args[0]
    return {}


def mark_scraper_run_failed(session_factory: SessionFactory, scraper_run_id: str, error: str) -> None:
    with session_factory() as db:
        db.execute(
            update(ScraperRun)
            .where(ScraperRun.id == scraper_run_id)
            .values(
                status=ScraperRunStatus.failed,
                error=error,
                completed_at=datetime.now(timezone.utc),
            )
        )
        db.commit()


def record_audit_error(session_factory: SessionFactory, business_id: str, error: str) -> None:
    with session_factory() as db:
        db.execute(update(Business).where(Business.id == business_id).values(audit_error=error))
        db.commit()


def handle_terminal_failure(
    session_factory: SessionFactory,
    job_type: JobType,
    payload: Dict[str, Any],
    error: str,
) -> None:
    try:
        if job_type == JobType.GRID_SEARCH and payload.get("scraperRunId"):
            mark_scraper_run_failed(session_factory, payload["scraperRunId"], error)
        elif job_type == JobType.AUDIT_WEBSITE and payload.get("businessId"):
            record_audit_error(session_factory, payload["businessId"], error)
    except SQLAlchemyError as e:
        logger.error(f"Could not record failure of {job_type.value} job: {e}")


@task_prerun.connect
def on_task_active(sender=None, task_id=None, **kwargs):
    job_type = _job_type(sender)
    if job_type:
        logger.info(f"[{task_id}] {job_type.value} active")


@task_success.connect
def on_task_completed(sender=None, result=None, **kwargs):
    job_type = _job_type(sender)
    if job_type:
        logger.info(f"[{sender.request.id}] {job_type.value} completed")


@task_retry.connect
def on_task_retry(sender=None, request=None, reason=None, **kwargs):
    job_type = _job_type(sender)
    if job_type:
        logger.warning(f"[{getattr(request, 'id', None)}] {job_type.value} scheduled for retry: {reason}")


@task_failure.connect
def on_task_failed(sender=None, task_id=None, exception=None, args=None, **kwargs):
    job_type = _job_type(sender)
    if not job_type:
        return

    error = str(exception)
    logger.error(f"[{task_id}] {job_type.value} failed: {type(exception).__name__}: {error}")
    handle_terminal_failure(get_session_factory(), job_type, _payload(args), error)
