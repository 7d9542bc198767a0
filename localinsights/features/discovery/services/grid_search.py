"""
Grid Search

Discovers business candidates inside one grid tile and stores them as raw
records. Steps run strictly in order inside a single transaction:

1. resolve the tile bounds (payload or GeoGrid row)
2. query the Places API around the tile center, then fetch Place Details for
   results without a website
3. upsert one raw record per distinct place, keyed by (source, place_id)
4. bump the ScraperRun counters
5. stamp GeoGrid.last_scraped

A failure at any step aborts the later ones and propagates.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from localinsights.features.discovery.models.geo_grid import GeoGrid
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus
from localinsights.features.discovery.schemas.grid_search import (
    Bounds,
    GridSearchJobPayload,
    GridSearchResult,
)
from localinsights.features.discovery.services.places_client import PlacesClient
from localinsights.features.discovery.services.raw_records import upsert_raw_record
from localinsights.platform.db.session import SessionFactory
from localinsights.platform.exceptions import DatabaseError, NetworkError, ValidationError
from localinsights.workers.job import Job, parse_payload

logger = logging.getLogger(__name__)

PLACES_SOURCE_ID = "google_places"
DETAIL_FIELDS = [
    "website", "formatted_phone_number", "international_phone_number",
    "formatted_address", "address_components", "opening_hours", "url",
]


class GridSearchProcessor:
    def __init__(self, session_factory: SessionFactory, places_client: PlacesClient, fetch_details: bool = True):
        self.session_factory = session_factory
        self.places_client = places_client
        self.fetch_details = fetch_details

    def process(self, job: Job) -> GridSearchResult:
        payload = parse_payload(GridSearchJobPayload, job.payload)
        log_prefix = f"[{job.id}]"

        with self.session_factory() as db:
            try:
                bounds, grid = self._resolve_bounds(db, payload)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Database Error: could not load grid {payload.grid_id}: {e}") from e

            center = bounds.center()
            logger.info(
                f"{log_prefix} Searching {payload.location} around {center.lat:.5f},{center.lng:.5f} "
                f"(radius={payload.radius}, category={payload.category or 'any'})"
            )

            places = self.places_client.search_nearby(center, payload.radius, payload.category)
            logger.info(f"{log_prefix} Places API returned {len(places)} results")

            places_by_id = self._unique_places(places, log_prefix)
            if self.fetch_details:
                places_by_id = {
                    place_id: self._with_details(place_id, place, log_prefix)
                    for place_id, place in places_by_id.items()
                }

            grid_id = grid.id if grid is not None else payload.grid_id

            try:
                record_ids = []
                for place_id, place in places_by_id.items():
                    record = upsert_raw_record(db, PLACES_SOURCE_ID, place_id, place)
                    record_ids.append(record.id)

                if payload.scraper_run_id:
                    self._record_run_progress(db, payload.scraper_run_id, len(record_ids), log_prefix)

                if grid is not None:
                    grid.last_scraped = datetime.now(timezone.utc)

                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"{log_prefix} Failed to store grid search results: {e}")
                raise DatabaseError(f"Database Error: {e}") from e

        logger.info(f"{log_prefix} Stored {len(record_ids)} raw records for {payload.location}")
        return GridSearchResult(
            businesses_found=len(record_ids),
            raw_record_ids=record_ids,
            grid_id=grid_id,
        )

    def _unique_places(self, places: List[Dict[str, Any]], log_prefix: str) -> Dict[str, Dict[str, Any]]:
        """Places keyed by place_id in API order; a place repeated across pages keeps its last payload."""
        unique: Dict[str, Dict[str, Any]] = {}
        for place in places:
            place_id = place.get("place_id")
            if not place_id:
                logger.warning(f"{log_prefix} Skipping place without place_id: {place.get('name')}")
                continue
            if place_id in unique:
                logger.debug(f"{log_prefix} Place {place_id} returned more than once")
            unique[place_id] = place
        return unique

    def _with_details(self, place_id: str, place: Dict[str, Any], log_prefix: str) -> Dict[str, Any]:
        """Merge Place Details into a Nearby Search result, which carries no website or phone."""
        if place.get("website"):
            return place
        try:
            details = self.places_client.get_place_details(place_id, fields=DETAIL_FIELDS)
        except NetworkError as e:
            logger.warning(f"{log_prefix} Place details for {place_id} unavailable, storing search result only: {e}")
            return place
        return {**place, **details}

    def _resolve_bounds(self, db: Session, payload: GridSearchJobPayload) -> Tuple[Bounds, Optional[GeoGrid]]:
        grid = db.get(GeoGrid, payload.grid_id) if payload.grid_id else None

        if payload.bounds is not None:
            return payload.bounds, grid

        if grid is None:
            if payload.grid_id:
                raise ValidationError(f"Unknown grid id {payload.grid_id} and no bounds supplied")
            raise ValidationError("Grid search requires either bounds or a grid id")

        return Bounds.model_validate(grid.bounds), grid

    def _record_run_progress(self, db: Session, scraper_run_id: str, found: int, log_prefix: str) -> None:
        now = datetime.now(timezone.utc)

        result = db.execute(
            update(ScraperRun)
            .where(ScraperRun.id == scraper_run_id)
            .values(
                businesses_found=ScraperRun.businesses_found + found,
                grids_completed=ScraperRun.grids_completed + 1,
            )
        )
        if result.rowcount == 0:
            logger.warning(f"{log_prefix} Scraper run {scraper_run_id} not found, counters not updated")
            return

        db.execute(
            update(ScraperRun)
            .where(
                ScraperRun.id == scraper_run_id,
                ScraperRun.status.in_([ScraperRunStatus.pending, ScraperRunStatus.running]),
                ScraperRun.grids_completed >= ScraperRun.grids_total,
            )
            .values(status=ScraperRunStatus.completed, completed_at=now)
        )
