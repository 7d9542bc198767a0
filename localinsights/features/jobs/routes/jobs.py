import logging

from fastapi import APIRouter, status
from redis.exceptions import ConnectionError as RedisConnectionError

from localinsights.platform.response import api_response
from localinsights.workers.orchestrator import get_job_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("/{job_id}")
def get_job(job_id: str):
    """Look up a queued job by id. Completed jobs are not retained and read as waiting."""
    try:
        job = get_job_status(job_id)
    except RedisConnectionError as e:
        logger.error(f"Result backend unavailable while looking up job {job_id}: {e}")
        return api_response(
            message="Job status is temporarily unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return api_response(data=job, message="Job status retrieved")
