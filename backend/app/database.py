import logging

from sqlalchemy import create_engine, Engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    """Pool options for the configured backend; SQLite is used by the test suite."""
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 5,
        "max_overflow": 10,
    }


try:
    engine: Engine = create_engine(
        settings.database_url,
        echo=False,
        **_engine_options(settings.database_url)
    )
    logger.info("Database engine created successfully")
except Exception as e:
    logger.critical(f"Failed to create database engine: {e}", exc_info=True)
    raise

# Session factory for dependency injection
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Declarative base for all models
Base = declarative_base()


def get_db():
    """
    Database session dependency for FastAPI routes.
    Yields a database session and ensures it's closed after the request.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        logger.debug("Database session created")
        yield db
    except OperationalError as e:
        logger.error(f"Database operational error: {e}", exc_info=True)
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        logger.debug("Database session closed")
        db.close()


def init_db():
    """
    Create all tables.

    NOTE: Development and tests only. In production run 'alembic upgrade head'.
    """
    import app.models  # noqa: F401  (registers models on Base.metadata)
    Base.metadata.create_all(bind=engine)


def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is successful, False otherwise.
    """
    try:
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
        logger.info("Database connection health check passed")
        return True
    except Exception as e:
        logger.error(f"Database connection health check failed: {e}", exc_info=True)
        return False
