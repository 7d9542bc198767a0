from celery import Celery
from kombu import Queue

from localinsights.platform.config import settings
from localinsights.workers.job import JobType


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - grid-search: discover businesses inside one grid tile (Places API)
    - process-raw-data: transform a raw provider record into a Business
    - audit-website: browser + Lighthouse audit of a business website
    - celery: periodic tasks (grid refresh)
    """
    celery_app = Celery(
        "local_insights",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
        task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,

        # Failed job results are kept for a week for inspection
        result_expires=7 * 24 * 3600,

        # Each job kind has its own queue
        task_routes={
            "localinsights.workers.tasks.grid_search": {"queue": JobType.GRID_SEARCH.queue},
            "localinsights.workers.tasks.process_raw_data": {"queue": JobType.PROCESS_RAW_DATA.queue},
            "localinsights.workers.tasks.audit_website": {"queue": JobType.AUDIT_WEBSITE.queue},
            "localinsights.workers.periodic_tasks.refresh_stale_grids": {"queue": "celery"},
        },

        task_queues=(
            Queue("celery"),  # For periodic tasks
            Queue(JobType.GRID_SEARCH.queue),
            Queue(JobType.PROCESS_RAW_DATA.queue),
            Queue(JobType.AUDIT_WEBSITE.queue),
        ),

        task_default_queue="celery",

        # Concurrency settings (can be overridden per worker)
        worker_prefetch_multiplier=1,  # Fair distribution

        # Retry settings
        task_acks_late=True,  # Acknowledge after task completes
        task_reject_on_worker_lost=True,  # Requeue if worker dies

        beat_schedule={
            "refresh-stale-grids": {
                "task": "localinsights.workers.periodic_tasks.refresh_stale_grids",
                "schedule": settings.GRID_REFRESH_INTERVAL,
            },
        },
    )

    celery_app.autodiscover_tasks(["localinsights.workers"], related_name="tasks")
    celery_app.autodiscover_tasks(["localinsights.workers"], related_name="periodic_tasks")
    celery_app.autodiscover_tasks(["localinsights.workers"], related_name="events")

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
