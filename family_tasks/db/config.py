"""Database configuration for the household task tracker."""
import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLModel engine for the given URL.

    SQLite engines get foreign keys switched on so that the model's
    ON DELETE rules apply; in-memory SQLite shares one connection.
    """
    if not database_url.startswith("sqlite"):
        logger.info("Using database %s", database_url.split("@")[-1])
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    logger.info("Using SQLite database: %s", database_url)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine
