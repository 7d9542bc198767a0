from functools import lru_cache
from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from localinsights.platform.config import settings

SessionFactory = Callable[[], Session]


def create_session_factory(database_url: str, **engine_options) -> sessionmaker:
    """Build a sync engine and session factory for worker processes."""
    # Workers are synchronous; strip the async driver if one was configured
    if database_url.startswith("postgresql+asyncpg://"):
        database_url = database_url.replace("postgresql+asyncpg://", "postgresql://")

    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, future=True, **engine_options)
    else:
        options = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
        options.update(engine_options)
        engine = create_engine(database_url, future=True, **options)

    return sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)


@lru_cache
def get_session_factory() -> sessionmaker:
    """Per-process session factory built from settings."""
    return create_session_factory(settings.DATABASE_URL)
