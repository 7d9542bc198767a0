import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from localinsights.features.discovery.models.geo_grid import GeoGrid
from localinsights.platform.celery_app import celery_app
from localinsights.platform.config import settings
from localinsights.platform.db.session import SessionFactory, get_session_factory
from localinsights.workers.orchestrator import enqueue_grid_search

logger = logging.getLogger(__name__)

REFRESH_BATCH_SIZE = 500


def find_stale_grids(session_factory: SessionFactory, max_age_days: int, limit: int = REFRESH_BATCH_SIZE):
    """Grids scraped at least once but not within ``max_age_days``, oldest first."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
    with session_factory() as db:
        grids = db.execute(
            select(GeoGrid)
            .where(GeoGrid.last_scraped.is_not(None), GeoGrid.last_scraped < cutoff)
            .order_by(GeoGrid.last_scraped)
            .limit(limit)
        ).scalars().all()
        return [
            {
                "gridId": grid.id,
                "location": grid.city,
                "bounds": grid.bounds,
                "radius": int(grid.radius or settings.DEFAULT_SEARCH_RADIUS),
            }
            for grid in grids
        ]


@celery_app.task(name="localinsights.workers.periodic_tasks.refresh_stale_grids")
def refresh_stale_grids() -> int:
    """Re-enqueue grid searches for tiles not scraped within GRID_REFRESH_DAYS."""
    payloads = find_stale_grids(get_session_factory(), settings.GRID_REFRESH_DAYS)
    for payload in payloads:
        enqueue_grid_search(payload)

    logger.info(f"Re-enqueued {len(payloads)} stale grids")
    return len(payloads)
