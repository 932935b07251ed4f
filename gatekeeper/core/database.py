"""Database engine, session management and the transaction helper used by the stores."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from time import monotonic

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from gatekeeper.core.config import settings
from gatekeeper.core.errors import OperationTimeoutError, StorageUnavailableError

logger = logging.getLogger(__name__)


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement switched on."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        new_engine = create_engine(url, connect_args=connect_args, **kwargs)

        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = make_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def deadline_after(timeout: float | None) -> float | None:
    """Absolute monotonic deadline for a relative timeout (None means no deadline)."""
    return None if timeout is None else monotonic() + timeout


def remaining(deadline: float | None) -> float | None:
    """Seconds left before `deadline`. Raises OperationTimeoutError once it has passed."""
    if deadline is None:
        return None
    left = deadline - monotonic()
    if left <= 0:
        raise OperationTimeoutError("Operation exceeded its deadline")
    return left


@contextmanager
def transaction(db: Session, timeout: float | None = None) -> Iterator[Session]:
    """
    Run one unit of work atomically and commit it.

    On any exception (including cancellation such as KeyboardInterrupt) the
    transaction is rolled back and nothing is persisted. IntegrityError is
    re-raised unchanged so callers can map constraint violations; other
    driver errors become StorageUnavailableError. When timeout is set the
    deadline is checked before commit, and on PostgreSQL each statement is
    also bounded by statement_timeout.
    """
    if timeout is not None and timeout <= 0:
        raise OperationTimeoutError("Operation deadline already expired")
    deadline = None if timeout is None else monotonic() + timeout
    try:
        if timeout is not None and db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {max(1, int(timeout * 1000))}"))
        yield db
        if deadline is not None and monotonic() > deadline:
            raise OperationTimeoutError("Operation exceeded its deadline")
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except DBAPIError as e:
        db.rollback()
        logger.warning("Database operation failed: %s", type(e.orig).__name__)
        raise StorageUnavailableError("Storage unavailable") from e
    except BaseException:
        db.rollback()
        raise
