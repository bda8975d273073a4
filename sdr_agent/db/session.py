"""
sdr_agent/db/session.py — SQLAlchemy engine and session factory.

Usage:
    from sdr_agent.db.session import get_db

    # As a FastAPI dependency:
    def my_route(db: Session = Depends(get_db)):
        ...

    # In scripts:
    with get_session() as db:
        ...

One session = one transaction: it commits when the request (or `with` block)
finishes cleanly and rolls back on any exception.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from sdr_agent.config import settings


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Let SQLAlchemy emit BEGIN itself on pysqlite connections.

    pysqlite defers BEGIN until the first write, so a SAVEPOINT issued before
    any write opens (and RELEASE then commits) its own transaction.
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Sync handlers run in a threadpool, so the connection crosses threads
        return enable_sqlite_savepoints(create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=False,
        ))
    return create_engine(
        database_url,
        pool_pre_ping=True,          # reconnect on stale connections
        pool_size=5,
        max_overflow=10,
        echo=False,                  # set True to log all SQL (useful for debugging)
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session and ensures it's closed."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager for use in scripts (non-FastAPI code)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
