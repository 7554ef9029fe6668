"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Every request gets a session
from get_db() and runs its mutation inside atomic().
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase

from lab_billing.config import get_settings
from lab_billing.exceptions import InternalError
from lab_billing.logging_config import get_logger

settings = get_settings()
logger = get_logger("db")

# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles cases where the database restarted or a
# connection went stale.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# --- Session Factory ---
# autocommit=False means we explicitly control when changes
# are saved. A billing mutation, its recomputed totals and its
# audit entry must land together or not at all.
# autoflush=False means SQLAlchemy won't send SQL to the
# database until we explicitly flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally pattern ensures the session is always
    closed, preventing connection leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    Run a block of service calls as one transaction.

    Commits when the block finishes and rolls back when it raises,
    so a mutation can never persist without its recomputed totals
    or its audit entry. Domain errors propagate unchanged; failures
    of the storage layer itself are re-raised as InternalError.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("transaction_failed", exc_info=exc)
        raise InternalError("Operation failed, try again") from exc
    except Exception:
        db.rollback()
        raise
