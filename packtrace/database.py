import logging
import time
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .exceptions import RequestTimeout

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

logger.info(f"Using database URL: {DATABASE_URL}")

Base = declarative_base()


def _engine_options(url: str) -> dict:
    """Connection pool settings per backend."""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live on one connection, share it across sessions
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options

    return {
        "pool_size": 8,
        "max_overflow": 2,
        "pool_pre_ping": True,
        "pool_recycle": 1800,  # Recycle every 30 min
    }


try:
    engine = create_engine(DATABASE_URL, echo=settings.SQL_ECHO, **_engine_options(DATABASE_URL))

    # Test connection
    with engine.connect() as connection:
        logger.info("Database connection successful!")

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

except SQLAlchemyError as e:
    logger.error(f"Database connection error: {e}")
    logger.error("Please check DATABASE_URL in your environment or .env file")
    logger.error("The application will continue but database operations will fail")

    engine = None
    SessionLocal = None


# Dependency to get DB session
def get_db(request: Request):
    if SessionLocal is None:
        raise SQLAlchemyError("Database connection not available")

    db = SessionLocal()
    # Set by the timeout middleware, checked by atomic() before committing
    db.info["deadline"] = getattr(request.state, "deadline", None)
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    Run a unit of work as one transaction.

    Commits when the block finishes, rolls back every change made in the
    block when anything inside it raises. A session bound to a request
    whose deadline has passed rolls back instead of committing.
    """
    try:
        yield db
        deadline = db.info.get("deadline")
        if deadline is not None and time.monotonic() > deadline:
            raise RequestTimeout("Request deadline passed before commit, changes rolled back")
        db.commit()
    except Exception:
        db.rollback()
        raise
