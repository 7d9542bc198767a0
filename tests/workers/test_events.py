from types import SimpleNamespace
from unittest.mock import patch

from localinsights.features.businesses.models.business import Business
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus
from localinsights.platform.exceptions import NavigationError
from localinsights.workers.events import handle_terminal_failure, on_task_failed
from localinsights.workers.job import JobType
from localinsights.workers.orchestrator import TASK_NAMES


def add_run(db):
    run = ScraperRun(status=ScraperRunStatus.running, location="Halifax", grids_total=4)
    db.add(run)
    db.commit()
    return run.id


class TestTerminalFailure:
    def test_grid_search_marks_run_failed(self, session_factory, db):
        run_id = add_run(db)

        handle_terminal_failure(
            session_factory,
            JobType.GRID_SEARCH,
            {"location": "Halifax", "scraperRunId": run_id},
            "Places API nearbysearch status=REQUEST_DENIED error=bad key",
        )

        db.expire_all()
        run = db.get(ScraperRun, run_id)
        assert run.status == ScraperRunStatus.failed
        assert run.error == "Places API nearbysearch status=REQUEST_DENIED error=bad key"
        assert run.completed_at is not None

    def test_audit_records_error_on_business(self, session_factory, db, business):
        handle_terminal_failure(
            session_factory,
            JobType.AUDIT_WEBSITE,
            {"businessId": business.id, "url": "https://harbourbakery.ca"},
            "Navigation timeout of 30000 ms exceeded",
        )

        db.expire_all()
        assert db.get(Business, business.id).audit_error == "Navigation timeout of 30000 ms exceeded"

    def test_payload_without_owner_is_ignored(self, session_factory, db):
        run_id = add_run(db)

        handle_terminal_failure(session_factory, JobType.GRID_SEARCH, {"location": "Halifax"}, "boom")
        handle_terminal_failure(session_factory, JobType.PROCESS_RAW_DATA, {"rawRecordId": "r-1"}, "boom")

        db.expire_all()
        assert db.get(ScraperRun, run_id).status == ScraperRunStatus.running


def test_failure_signal_records_audit_error(session_factory, db, business):
    sender = SimpleNamespace(name=TASK_NAMES[JobType.AUDIT_WEBSITE])

    with patch("localinsights.workers.events.get_session_factory", return_value=session_factory):
        on_task_failed(
            sender=sender,
            task_id="job-1",
            exception=NavigationError("Navigation timeout of 30000 ms exceeded"),
            args=[{"businessId": business.id, "url": "https://harbourbakery.ca"}],
        )

    db.expire_all()
    assert db.get(Business, business.id).audit_error == "Navigation timeout of 30000 ms exceeded"


def test_failure_signal_ignores_other_tasks(session_factory):
    with patch("localinsights.workers.events.handle_terminal_failure") as handle:
        on_task_failed(sender=SimpleNamespace(name="celery.backend_cleanup"), task_id="x", exception=KeyError("x"), args=[])

    handle.assert_not_called()
