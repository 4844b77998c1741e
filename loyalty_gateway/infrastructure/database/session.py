"""Database session management with connection pooling"""

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from loyalty_gateway.config import Settings
from loyalty_gateway.domain.exceptions import StorageError


class ConflictingWriteError(StorageError):
    """Write rejected by a unique or check constraint"""

    pass


def build_engine(settings: Settings) -> Engine:
    """Create the engine for the configured database URL"""
    if settings.database_url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Commit on success, roll back on any error.

    Raises:
        ConflictingWriteError: On unique/check constraint violations
        StorageError: On any other database failure
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictingWriteError(f"Conflicting write: {e.orig}") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Database error: {e}") from e
    except BaseException:
        db.rollback()
        raise


def get_db(request: Request) -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
