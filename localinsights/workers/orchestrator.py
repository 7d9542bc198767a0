"""
Queue orchestration on top of Celery.

- job options shared by every job kind (attempts, exponential backoff,
  result retention)
- ``PipelineTask``: base task translating processor outcomes into Celery
  retry or terminal failure
- producer helpers to enqueue jobs and look up their status
- region planning: tile a city into GeoGrid rows and enqueue one grid search
  per tile
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from celery import Task
from celery.result import AsyncResult
from sqlalchemy.exc import SQLAlchemyError

from localinsights.features.discovery.models.geo_grid import GeoGrid
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus
from localinsights.features.discovery.schemas.grid_search import Bounds, RegionSearchPlan
from localinsights.features.discovery.utils.grid_calculator import calculate_optimal_grid_system, sub_grid_bounds
from localinsights.platform.celery_app import celery_app
from localinsights.platform.config import settings
from localinsights.platform.db.session import SessionFactory
from localinsights.platform.exceptions import DatabaseError, PipelineError
from localinsights.workers.job import Job, JobStatus, JobType

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

TASK_NAMES: Dict[JobType, str] = {
    JobType.GRID_SEARCH: "localinsights.workers.tasks.grid_search",
    JobType.PROCESS_RAW_DATA: "localinsights.workers.tasks.process_raw_data",
    JobType.AUDIT_WEBSITE: "localinsights.workers.tasks.audit_website",
}

CELERY_STATE_TO_STATUS = {
    "PENDING": JobStatus.WAITING,
    "RECEIVED": JobStatus.WAITING,
    "RETRY": JobStatus.WAITING,
    "STARTED": JobStatus.ACTIVE,
    "SUCCESS": JobStatus.COMPLETED,
    "FAILURE": JobStatus.FAILED,
    "REVOKED": JobStatus.FAILED,
}


@dataclass(frozen=True)
class JobOptions:
    attempts: int = 3
    backoff_delay: float = 5.0  # seconds before the first retry
    remove_on_complete: bool = True
    remove_on_fail: bool = False


DEFAULT_JOB_OPTIONS = JobOptions(attempts=settings.JOB_ATTEMPTS, backoff_delay=settings.JOB_BACKOFF_DELAY)


def compute_backoff(attempt: int, base_delay: float) -> float:
    """Delay before retrying after the given 1-based attempt failed."""
    return base_delay * 2 ** (max(1, attempt) - 1)


def should_retry(exc: BaseException, attempt: int, max_attempts: int) -> bool:
    return getattr(exc, "retryable", True) and attempt < max_attempts


class PipelineTask(Task):
    """
    Base class of every pipeline task.

    Builds the immutable Job from the Celery request, runs the processor and
    decides between retry with exponential backoff and terminal failure.
    """

    job_type: JobType = None
    options: JobOptions = DEFAULT_JOB_OPTIONS

    max_retries = DEFAULT_JOB_OPTIONS.attempts - 1
    ignore_result = DEFAULT_JOB_OPTIONS.remove_on_complete
    store_errors_even_if_ignored = not DEFAULT_JOB_OPTIONS.remove_on_fail
    acks_late = True

    def build_job(self, payload: Dict[str, Any]) -> Job:
        return Job(
            id=self.request.id,
            queue=self.job_type.queue,
            payload=payload,
            attempt=(self.request.retries or 0) + 1,
            max_attempts=self.options.attempts,
        )

    def run_job(self, payload: Dict[str, Any], processor: Callable[[Job], ResultT]) -> ResultT:
        job = self.build_job(payload)
        logger.info(f"[{job.id}] {job.queue} attempt {job.attempt}/{job.max_attempts} started")

        try:
            return processor(job)
        except Exception as exc:
            if should_retry(exc, job.attempt, job.max_attempts):
                countdown = compute_backoff(job.attempt, self.options.backoff_delay)
                logger.warning(
                    f"[{job.id}] {job.queue} attempt {job.attempt} failed ({type(exc).__name__}: {exc}), "
                    f"retrying in {countdown:.0f}s"
                )
                raise self.retry(exc=exc, countdown=countdown, max_retries=job.max_attempts - 1)

            reason = "not retryable" if isinstance(exc, PipelineError) and not exc.retryable else "attempts exhausted"
            logger.error(f"[{job.id}] {job.queue} failed terminally ({reason}): {type(exc).__name__}: {exc}")
            raise


def enqueue(job_type: JobType, payload: Dict[str, Any], countdown: Optional[float] = None) -> str:
    result = celery_app.send_task(
        TASK_NAMES[job_type],
        args=[payload],
        queue=job_type.queue,
        countdown=countdown,
    )
    logger.info(f"Enqueued {job_type.value} job {result.id}")
    return result.id


def enqueue_grid_search(payload: Dict[str, Any]) -> str:
    return enqueue(JobType.GRID_SEARCH, payload)


def enqueue_raw_data_processing(raw_record_id: str) -> str:
    return enqueue(JobType.PROCESS_RAW_DATA, {"rawRecordId": raw_record_id})


def enqueue_website_audit(business_id: str, url: str, options: Optional[Dict[str, Any]] = None) -> str:
    payload = {"businessId": business_id, "url": url}
    if options:
        payload["options"] = options
    return enqueue(JobType.AUDIT_WEBSITE, payload)


def get_job_status(job_id: str) -> Dict[str, Any]:
    """
    Status of a job as recorded by the result backend.

    Successful results are not retained, so a finished job that succeeded reads
    as waiting; failures keep their error.
    """
    result = AsyncResult(job_id, app=celery_app)
    state = result.state
    status = CELERY_STATE_TO_STATUS.get(state, JobStatus.ACTIVE)

    info: Dict[str, Any] = {"id": job_id, "status": status.value, "state": state}
    if state == "FAILURE":
        info["error"] = str(result.result)
    elif state == "SUCCESS":
        info["result"] = result.result
    return info


def plan_region_search(
    session_factory: SessionFactory,
    location: str,
    bounds: Bounds,
    category: Optional[str] = None,
) -> RegionSearchPlan:
    """Tile the bounds into GeoGrid rows under a new ScraperRun and enqueue one grid search per tile."""
    sub_grids = calculate_optimal_grid_system(bounds)
    now = datetime.now(timezone.utc)

    with session_factory() as db:
        try:
            run = ScraperRun(
                status=ScraperRunStatus.running,
                location=location,
                category=category,
                grids_total=len(sub_grids),
                started_at=now,
            )
            db.add(run)

            grids = []
            for index, sub_grid in enumerate(sub_grids, start=1):
                tile = sub_grid_bounds(sub_grid)
                grid = GeoGrid(
                    city=location,
                    name=f"{location} #{index}",
                    northeast_lat=tile.northeast.lat,
                    northeast_lng=tile.northeast.lng,
                    southwest_lat=tile.southwest.lat,
                    southwest_lng=tile.southwest.lng,
                    radius=sub_grid.radius,
                )
                db.add(grid)
                grids.append(grid)

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise DatabaseError(f"Database Error: could not plan region search for {location}: {e}") from e

        run_id = run.id
        jobs = [
            (grid.id, {
                "gridId": grid.id,
                "location": location,
                "bounds": grid.bounds,
                "radius": int(grid.radius),
                "category": category,
                "scraperRunId": run_id,
            })
            for grid in grids
        ]

    job_ids = [enqueue_grid_search(payload) for _, payload in jobs]
    logger.info(f"Planned region search {run_id} for {location}: {len(jobs)} grids")

    return RegionSearchPlan(scraper_run_id=run_id, grid_ids=[grid_id for grid_id, _ in jobs], job_ids=job_ids)
