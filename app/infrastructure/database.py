"""Database configuration and session management."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def build_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for ``database_url``.

    SQLite connections are shared across the FastAPI threadpool, and an
    in-memory SQLite database keeps a single connection so every session sees
    the same data.
    """

    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url, connect_args=connect_args, poolclass=StaticPool
            )
        return create_engine(database_url, connect_args=connect_args)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return the session factory used by repositories."""

    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def initialize_database(engine: Engine) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from app.infrastructure import models  # noqa: F401  # ensure models are imported

    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database schema ready on %s", engine.url.render_as_string(hide_password=True))


__all__ = ["Base", "build_engine", "build_session_factory", "initialize_database"]
