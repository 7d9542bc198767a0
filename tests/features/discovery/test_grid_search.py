from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from localinsights.features.discovery.models.geo_grid import GeoGrid
from localinsights.features.discovery.models.raw_business_data import RawBusinessData
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus
from localinsights.features.discovery.services.grid_search import GridSearchProcessor
from localinsights.platform.exceptions import DatabaseError, NetworkError, ValidationError

BOUNDS = {
    "northeast": {"lat": 44.66, "lng": -63.56},
    "southwest": {"lat": 44.64, "lng": -63.58},
}

PLACES = [
    {"place_id": "ChIJ1", "name": "Harbour Bakery"},
    {"place_id": "ChIJ2", "name": "Dockside Books"},
]


@pytest.fixture
def places_client():
    client = MagicMock()
    client.search_nearby.return_value = list(PLACES)
    client.get_place_details.return_value = {}
    return client


@pytest.fixture
def processor(session_factory, places_client):
    return GridSearchProcessor(session_factory, places_client)


@pytest.fixture
def grid(db):
    grid = GeoGrid(
        city="Halifax",
        northeast_lat=44.66,
        northeast_lng=-63.56,
        southwest_lat=44.64,
        southwest_lng=-63.58,
        radius=1000,
    )
    db.add(grid)
    db.commit()
    return grid


def add_run(db, grids_total=1):
    run = ScraperRun(status=ScraperRunStatus.running, location="Halifax", grids_total=grids_total)
    db.add(run)
    db.commit()
    return run.id


def count_raw_records(db):
    return db.scalar(select(func.count()).select_from(RawBusinessData))


class TestGridSearch:
    def test_stores_raw_records(self, processor, places_client, db, make_job):
        result = processor.process(make_job({"location": "Halifax", "bounds": BOUNDS, "radius": 800, "category": "bakery"}))

        assert result.businesses_found == 2
        assert len(result.raw_record_ids) == 2
        assert result.grid_id is None

        center, radius, category = places_client.search_nearby.call_args.args
        assert center.lat == pytest.approx(44.65)
        assert center.lng == pytest.approx(-63.57)
        assert (radius, category) == (800, "bakery")

        records = db.execute(select(RawBusinessData).order_by(RawBusinessData.external_id)).scalars().all()
        assert [(r.source_id, r.external_id, r.processed) for r in records] == [
            ("google_places", "ChIJ1", False),
            ("google_places", "ChIJ2", False),
        ]
        assert records[0].raw_data == PLACES[0]

    def test_bounds_resolved_from_grid(self, processor, places_client, grid, db, make_job):
        result = processor.process(make_job({"location": "Halifax", "gridId": grid.id}))

        assert result.grid_id == grid.id
        center = places_client.search_nearby.call_args.args[0]
        assert center.lat == pytest.approx(44.65)

        db.expire_all()
        assert db.get(GeoGrid, grid.id).last_scraped is not None

    def test_rediscovery_resets_processed(self, processor, db, make_job):
        db.add(RawBusinessData(source_id="google_places", external_id="ChIJ1", raw_data={"name": "Old"}, processed=True, error="boom"))
        db.commit()

        processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        db.expire_all()
        assert count_raw_records(db) == 2
        record = db.execute(select(RawBusinessData).where(RawBusinessData.external_id == "ChIJ1")).scalar_one()
        assert record.processed is False
        assert record.error is None
        assert record.raw_data["name"] == "Harbour Bakery"

    def test_places_without_id_are_skipped(self, processor, places_client, db, make_job):
        places_client.search_nearby.return_value = [{"name": "No id"}, PLACES[0]]

        result = processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        assert result.businesses_found == 1
        assert count_raw_records(db) == 1

    def test_run_counters_and_completion(self, processor, places_client, db, make_job):
        run_id = add_run(db, grids_total=2)
        payload = {"location": "Halifax", "bounds": BOUNDS, "scraperRunId": run_id}

        processor.process(make_job(payload))
        db.expire_all()
        run = db.get(ScraperRun, run_id)
        assert (run.businesses_found, run.grids_completed, run.status) == (2, 1, ScraperRunStatus.running)

        places_client.search_nearby.return_value = [{"place_id": "ChIJ3"}]
        processor.process(make_job(payload, job_id="job-2"))
        db.expire_all()
        run = db.get(ScraperRun, run_id)
        assert (run.businesses_found, run.grids_completed) == (3, 2)
        assert run.status == ScraperRunStatus.completed
        assert run.completed_at is not None

    def test_unknown_run_is_ignored(self, processor, make_job):
        result = processor.process(make_job({"location": "Halifax", "bounds": BOUNDS, "scraperRunId": "missing"}))
        assert result.businesses_found == 2

    def test_network_error_stores_nothing(self, processor, places_client, grid, db, make_job):
        places_client.search_nearby.side_effect = NetworkError("Places API nearbysearch timed out after 5.0s")
        run_id = add_run(db)

        with pytest.raises(NetworkError):
            processor.process(make_job({"location": "Halifax", "gridId": grid.id, "scraperRunId": run_id}))

        db.expire_all()
        assert count_raw_records(db) == 0
        assert db.get(GeoGrid, grid.id).last_scraped is None
        assert db.get(ScraperRun, run_id).grids_completed == 0

    def test_insert_failure_skips_counters_and_grid(self, processor, grid, db, make_job):
        run_id = add_run(db)

        with patch(
            "localinsights.features.discovery.services.grid_search.upsert_raw_record",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(DatabaseError, match="Database Error"):
                processor.process(make_job({"location": "Halifax", "gridId": grid.id, "scraperRunId": run_id}))

        db.expire_all()
        run = db.get(ScraperRun, run_id)
        assert (run.businesses_found, run.grids_completed) == (0, 0)
        assert db.get(GeoGrid, grid.id).last_scraped is None

    def test_grid_refresh_updates_last_scraped(self, processor, grid, db, make_job):
        stale = datetime(2020, 1, 1, tzinfo=timezone.utc)
        grid.last_scraped = stale
        db.commit()

        processor.process(make_job({"location": "Halifax", "gridId": grid.id}))

        db.expire_all()
        assert db.get(GeoGrid, grid.id).last_scraped.year > 2020


class TestPayloadValidation:
    def test_requires_bounds_or_grid(self, processor, places_client, make_job):
        with pytest.raises(ValidationError, match="either bounds or a grid id"):
            processor.process(make_job({"location": "Halifax"}))
        places_client.search_nearby.assert_not_called()

    def test_unknown_grid_without_bounds(self, processor, make_job):
        with pytest.raises(ValidationError, match="Unknown grid id"):
            processor.process(make_job({"location": "Halifax", "gridId": "missing"}))

    def test_missing_location(self, processor, make_job):
        with pytest.raises(ValidationError, match="location"):
            processor.process(make_job({"bounds": BOUNDS}))

    def test_degenerate_bounds(self, processor, make_job):
        flipped = {"northeast": BOUNDS["southwest"], "southwest": BOUNDS["northeast"]}
        with pytest.raises(ValidationError):
            processor.process(make_job({"location": "Halifax", "bounds": flipped}))


class TestRunBookkeeping:
    def test_grid_job_counts_once(self, processor, grid, db, make_job):
        run_id = add_run(db, grids_total=1)

        result = processor.process(make_job({"location": "Halifax", "gridId": grid.id, "scraperRunId": run_id}))

        assert result.grid_id == grid.id
        db.expire_all()
        run = db.get(ScraperRun, run_id)
        assert (run.businesses_found, run.grids_completed) == (2, 1)
        assert run.status == ScraperRunStatus.completed

    def test_place_repeated_across_pages_counts_once(self, processor, places_client, db, make_job):
        places_client.search_nearby.return_value = [
            {"place_id": "ChIJ1", "name": "Harbour Bakery"},
            {"place_id": "ChIJ2", "name": "Dockside Books"},
            {"place_id": "ChIJ1", "name": "Harbour Bakery"},
        ]
        run_id = add_run(db, grids_total=2)

        result = processor.process(make_job({"location": "Halifax", "bounds": BOUNDS, "scraperRunId": run_id}))

        assert result.businesses_found == 2
        assert len(set(result.raw_record_ids)) == len(result.raw_record_ids) == 2
        db.expire_all()
        assert db.get(ScraperRun, run_id).businesses_found == 2
        assert count_raw_records(db) == 2


class TestPlaceDetails:
    def test_details_merged_into_raw_record(self, processor, places_client, db, make_job):
        places_client.get_place_details.side_effect = lambda place_id, fields: (
            {"website": "https://harbourbakery.ca", "formatted_phone_number": "(902) 555-0100"}
            if place_id == "ChIJ1" else {}
        )

        processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        record = db.execute(select(RawBusinessData).where(RawBusinessData.external_id == "ChIJ1")).scalar_one()
        assert record.raw_data["website"] == "https://harbourbakery.ca"
        assert record.raw_data["name"] == "Harbour Bakery"
        assert "website" in places_client.get_place_details.call_args.kwargs["fields"]

    def test_place_with_website_skips_details(self, processor, places_client, make_job):
        places_client.search_nearby.return_value = [{"place_id": "ChIJ1", "website": "https://harbourbakery.ca"}]

        processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        places_client.get_place_details.assert_not_called()

    def test_details_failure_keeps_search_result(self, processor, places_client, db, make_job):
        places_client.get_place_details.side_effect = NetworkError("Places API details timed out after 5.0s")

        result = processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        assert result.businesses_found == 2
        record = db.execute(select(RawBusinessData).where(RawBusinessData.external_id == "ChIJ1")).scalar_one()
        assert record.raw_data == PLACES[0]

    def test_details_disabled(self, session_factory, places_client, make_job):
        processor = GridSearchProcessor(session_factory, places_client, fetch_details=False)

        processor.process(make_job({"location": "Halifax", "bounds": BOUNDS}))

        places_client.get_place_details.assert_not_called()
