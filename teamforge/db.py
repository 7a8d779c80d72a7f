# teamforge/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev)

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Generator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from teamforge.config import DATABASE_PATH, DATABASE_URL, IS_DEV, IS_POSTGRES
from teamforge.errors import StoreUnavailableError

# Global engine, created lazily
_engine: Optional[Engine] = None


def default_database_url() -> str:
    """Resolve the configured database URL (Postgres if set, else local SQLite file)."""
    if IS_POSTGRES:
        # SQLAlchemy only accepts the postgresql:// scheme
        if DATABASE_URL.startswith("postgres://"):
            return "postgresql://" + DATABASE_URL[len("postgres://"):]
        return DATABASE_URL

    db_path = FsPath(DATABASE_PATH)
    if not db_path.is_absolute():
        db_path = FsPath(__file__).resolve().parent / db_path
    return f"sqlite:///{db_path}"


def init_engine(url: Optional[str] = None) -> Engine:
    """
    Initialize the SQLAlchemy engine.

    Args:
        url: Database URL override (tests point this at a temporary SQLite file)

    Returns:
        The process-wide engine
    """
    global _engine

    url = url or default_database_url()

    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite"):
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 15},
            echo=False,
        )
        print("[DB] Using SQLite (local dev mode)")
        return _engine

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")

    # Connection pooling for Postgres
    _engine = create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        echo=False,  # Set True for SQL debugging
    )
    print(f"[DB] Using PostgreSQL ({parsed.hostname})")
    return _engine


def get_engine() -> Engine:
    """Return the engine, creating it from configuration on first use."""
    if _engine is None:
        return init_engine()
    return _engine


def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


@contextmanager
def get_db_connection() -> Generator[Connection, None, None]:
    """
    Context manager yielding a connection inside a transaction.

    Commits when the block exits cleanly, rolls back on any exception.
    Connection and commit failures surface as StoreUnavailableError.
    """
    try:
        conn = get_engine().connect()
    except DBAPIError as e:
        print(f"[DB] Connection failed: {type(e).__name__}")
        raise StoreUnavailableError("database connection failed") from e

    try:
        with conn.begin():
            yield conn
    except IntegrityError:
        raise
    except DBAPIError as e:
        if IS_DEV:
            print(f"[DB] Transaction failed: {e}")
        raise StoreUnavailableError("database transaction failed") from e
    finally:
        conn.close()
