"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Engine and session management for the journal database.

- Resolves the database URL from the environment
- Builds engines (SQLite and server databases)
- Provides the session factory and transaction scope
- Creates tables for development and tests

============================================================
SQLITE
============================================================
SQLite engines are created with check_same_thread=False so a
session can cross the FastAPI threadpool. In-memory URLs use a
StaticPool so every session sees the same database. Foreign keys
are switched on per connection.

============================================================
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storage.models.base import Base


logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./trading_journal.db"


def get_database_url() -> str:
    """Database URL from the environment (.env honoured)."""
    load_dotenv()
    url = os.getenv("DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")
    return url


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_in_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or ":memory:" in url


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        url: Database URL; defaults to get_database_url()
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = url or get_database_url()
    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    kwargs = {"echo": echo}
    if _is_sqlite(url):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_in_memory(url):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)

    if _is_sqlite(url):
        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transaction boundary: commit on success, roll back on any error.

    Usage:
        with session_scope(factory) as session:
            TradeEntryRepository(session).create_trade_entry(...)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine) -> None:
    """Create every journal table that does not exist yet."""
    import storage.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(engine)
    logger.info("Database tables ensured")
