"""
Database Configuration
Engine, session factory and transactional unit of work
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.orm.exc import StaleDataError

from expenseflow.config.settings import settings
from expenseflow.utils.exceptions import ConcurrentTransitionError, ExternalServiceError
from expenseflow.utils.logger import setup_logger

logger = setup_logger()


connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
    connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @router.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Run a block of dependent reads and writes as one transaction.

    Commits when the block exits normally and rolls everything back when it
    raises. A lost optimistic-version race surfaces as
    ConcurrentTransitionError; any other data-store failure as
    ExternalServiceError.

    Args:
        db: Database session
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrentTransitionError(
            "The expense was modified by another action; reload and try again"
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Data store operation failed: {type(e).__name__}")
        raise ExternalServiceError("Data store operation failed") from e
    except Exception:
        db.rollback()
        raise
