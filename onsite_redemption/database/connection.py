from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from onsite_redemption.config import Config

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Stations hit the API from several worker threads at once.
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(Config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(url: str) -> Engine:
    """Point the module-level engine and session factory at another database."""
    global engine
    engine.dispose()
    engine = build_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    """Initialize database"""
    from onsite_redemption.database.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))


def get_db() -> Iterator[Session]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
