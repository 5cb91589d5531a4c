"""
Database session management for SQLAlchemy.
Provides connection pooling, session lifecycle and transaction helpers.
"""
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker, Session
from typing import Any, Dict, Generator, Iterator
import logging

from app.core.config import settings
from app.core.exceptions import TransientStoreFailure

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using them
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


# Create database engine with connection pooling
engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_options())

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function for FastAPI endpoints.
    Provides a database session and ensures cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def is_transient_error(exc: BaseException) -> bool:
    """Connection loss, lock timeouts and pool exhaustion are worth retrying."""
    if isinstance(exc, (TransientStoreFailure, PoolTimeoutError, OperationalError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a unit of work atomically.

    Commits on success. On any error the session is rolled back, so a
    transition and its side effects are either all applied or not at all.
    Transient database errors are re-raised as TransientStoreFailure.
    """
    try:
        yield db
        db.commit()
    except (DBAPIError, PoolTimeoutError) as e:
        db.rollback()
        if is_transient_error(e):
            logger.warning(f"Transient database failure, transaction rolled back: {e}")
            raise TransientStoreFailure(str(e)) from e
        raise
    except BaseException:
        db.rollback()
        raise


def insert_ignore(db: Session, model, values: Dict[str, Any]) -> bool:
    """
    INSERT ... ON CONFLICT DO NOTHING for the model's table.

    Keys of ``values`` are column names. Returns True when a row was written,
    False when a unique constraint already held an equivalent row.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")

    stmt = insert(model.__table__).values(**values).on_conflict_do_nothing()
    result = db.execute(stmt)
    return result.rowcount == 1


def init_db() -> None:
    """
    Initialize database tables.

    NOTE: In production, use Alembic migrations instead.
    This function is for development/testing only.
    """
    from app.models import Base

    logger.info("Initializing database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized successfully")


def check_db_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is successful, False otherwise
    """
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection check: SUCCESS")
        return True
    except Exception as e:
        logger.error(f"Database connection check: FAILED - {e}")
        return False
