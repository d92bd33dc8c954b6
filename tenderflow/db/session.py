"""
Database session management with SQLAlchemy.
"""
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool
from typing import Callable, Generator, TypeVar
from contextlib import contextmanager

from tenderflow.core.config import settings
from tenderflow.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments for the configured backend."""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory databases live on one connection
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database session."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def run_in_transaction(db: Session, operation: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a unit of work and commit or roll back based on its outcome.

    The operation returns a result object; a falsy ``success`` attribute rolls
    the transaction back so failed operations never leave partial writes.
    Transient storage failures (deadlock, lock timeout) are retried once from
    a clean session state. Anything else is rolled back and re-raised.
    """
    attempts = 2
    for attempt in range(1, attempts + 1):
        try:
            result = operation(*args, **kwargs)
        except OperationalError as e:
            db.rollback()
            if attempt >= attempts:
                logger.error(f"Transient storage failure persisted after retry: {e}")
                raise
            logger.warning(f"Transient storage failure, retrying once: {e}")
            continue
        except Exception:
            db.rollback()
            raise

        if getattr(result, "success", True):
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
        else:
            db.rollback()
        return result


def init_db():
    """
    Verify the schema at startup.

    Schema is managed by Alembic migrations (`alembic upgrade head`).
    With DEBUG=true missing tables are created directly for local runs.
    """
    from tenderflow.db import models  # noqa

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.error(f"Database unreachable: {e}")
        raise

    existing_tables = inspect(engine).get_table_names()
    required_tables = ["users", "rfx", "supplier_bids", "contracts"]
    missing = [t for t in required_tables if t not in existing_tables]

    if not missing:
        logger.info(f"Database schema verified: {len(existing_tables)} tables found")
        return

    logger.warning(f"Missing required tables: {missing}. Run `alembic upgrade head`.")
    if settings.DEBUG:
        logger.warning("DEBUG=true: Auto-creating tables (NOT for production!)")
        Base.metadata.create_all(bind=engine)
