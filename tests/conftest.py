"""
Test configuration and fixtures for the Local Web Insights workers.

Environment defaults are set before any localinsights import so settings,
the Celery app and the session factory never touch real services.
"""

import os
from typing import Generator

from dotenv import load_dotenv

load_dotenv()

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["GOOGLE_MAPS_API_KEYS"] = "test-key"
os.environ["AUTO_ENQUEUE_FOLLOWUPS"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from localinsights.features.businesses.models.business import Business
from localinsights.platform.db.models import Base
from localinsights.workers.job import Job


@pytest.fixture
def session_factory():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture
def make_job():
    def _make_job(payload, queue="grid-search", attempt=1, max_attempts=3, job_id="job-1"):
        return Job(id=job_id, queue=queue, payload=payload, attempt=attempt, max_attempts=max_attempts)

    return _make_job


@pytest.fixture
def business(db) -> Business:
    business = Business(
        source_id="google_places",
        external_id="place-1",
        name="Harbour Bakery",
        city="Halifax",
        categories=["bakery"],
        photo_urls=[],
    )
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from localinsights.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client
