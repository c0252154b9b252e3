from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from taskmanager.core.config import settings


def _engine_options(url: str) -> dict:
    """Extra create_engine arguments needed by the configured backend"""
    if not url.startswith("sqlite"):
        return {}
    # SQLite connections are shared with FastAPI's threadpool workers
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory databases live inside a single connection
        options["poolclass"] = StaticPool
    return options


# Create database engine - manages connection pool
# Built once at import from settings and never replaced afterwards
engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Create session factory - each request gets a new session
# autocommit=False: Changes require explicit commit (prevents accidental commits)
# autoflush=False: Don't auto-flush before queries (better performance)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all database models
Base = declarative_base()


def init_db() -> None:
    """
    Create tables for every model registered on Base.

    Called from the app lifespan before the first request is served.
    In production, use migrations (Alembic) instead of create_all.
    """
    # Import models so they register with Base.metadata
    from taskmanager.models import task, user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """
    Dependency for getting database session.

    This is a FastAPI dependency that provides a database session to route handlers.
    The session is automatically closed after the request completes (via finally block).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close session, even if request raises an exception
        db.close()


# Integer columns are 32-bit INTEGER on PostgreSQL
MAX_ROW_ID = 2**31 - 1


def parse_row_id(value) -> Optional[int]:
    """
    Convert a client-supplied id to a primary key value.

    Returns None for anything that cannot name a row (non-numeric, zero,
    negative or past MAX_ROW_ID) so callers can answer not-found instead
    of letting the driver fail on it.
    """
    try:
        row_id = int(value)
    except (TypeError, ValueError):
        return None
    if not 0 < row_id <= MAX_ROW_ID:
        return None
    return row_id
