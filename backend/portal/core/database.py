"""
database.py — Database Session & Connection Management

Purpose:
- Own the SQLAlchemy Engine + Session factory as one explicitly constructed
  resource (`Database`) created at process start and disposed at shutdown.
- Expose a FastAPI dependency `get_db()` that yields a session per-request.
- Provide `atomic()` so multi-row mutations commit all-or-nothing.

Key Characteristics:
- Synchronous SQLAlchemy engine; FastAPI runs sync endpoints in its threadpool.
- No Alembic; `create_all()` builds the schema at startup when enabled.
- PostgreSQL URLs are normalized to the psycopg (v3) driver.
- SQLite is accepted for local runs and tests (foreign keys switched on).

This module does NOT:
- Define ORM models (see portal/models/*).
- Perform any queries or business logic.
"""

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portal.core.errors import PersistenceError, PortalError
from portal.core.logging import get_logger

logger = get_logger(__name__)


def normalize_database_url(db_url: str) -> str:
    """
    Convert postgresql:// to postgresql+psycopg:// if no driver is specified.
    """
    db_url = db_url.strip()
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# -----------------------------------------------------------------------------
# Database Resource
# -----------------------------------------------------------------------------

class Database:
    """
    Engine + session factory pair with an explicit lifecycle.

    One instance per process, shared by every request; each request gets its
    own Session from `session()`.
    """

    def __init__(self, db_url: str, echo: bool = False):
        if not db_url or not db_url.strip():
            raise RuntimeError("Database is not configured. Please set DATABASE_URL.")

        self.url = normalize_database_url(db_url)

        if self.url.startswith("sqlite"):
            self.engine: Engine = create_engine(
                self.url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                self.url,
                echo=echo,
                pool_pre_ping=True,  # Ensures connections are valid before use
            )

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def create_all(self) -> None:
        # Import models so they register on the shared metadata
        from portal.models import assignment, file_audit, user  # noqa: F401
        from portal.models.base import Base

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables ensured on %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


# -----------------------------------------------------------------------------
# Transactions
# -----------------------------------------------------------------------------

@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a block of writes as one transaction.

    Commits when the block exits cleanly. Any exception rolls back every write
    made in the block; database errors are re-raised as PersistenceError so
    callers see a single server error and never a partial state.
    """
    try:
        yield db
        db.commit()
    except PortalError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise PersistenceError(detail=str(e)) from e
    except Exception:
        db.rollback()
        raise


# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_db(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency: yields a database session for the duration of the request.

    Usage in API endpoint:
        def endpoint(db: Session = Depends(get_db)):
            db.query(...)
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
