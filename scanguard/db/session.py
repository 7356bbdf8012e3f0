"""Synchronous SQLAlchemy engine and session factory.

Scans run on blocking worker threads, so the database layer uses the plain
(synchronous) SQLAlchemy API.  Each repository call opens its own session
from the factory returned by :func:`create_session_factory`.

SQLite DSNs are accepted for development and tests.  An in-memory SQLite
database is shared across threads through a single static connection.
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scanguard.db.base import Base


def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet (development and tests only).

    Production schemas are managed by the Alembic migrations.
    """
    import scanguard.models  # noqa: F401

    Base.metadata.create_all(engine)
