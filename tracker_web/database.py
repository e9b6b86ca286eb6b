"""Database utilities for the card tracker API."""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager, contextmanager, nullcontext
from typing import AsyncIterator, Iterator
from weakref import WeakKeyDictionary

from sqlalchemy import inspect, text
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from .config import Settings

DATABASE_URL = Settings().database_url

USING_SQLITE = DATABASE_URL.startswith("sqlite")
connect_args = {"check_same_thread": False} if USING_SQLITE else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

DATABASE_WRITE_LOCK = threading.RLock() if USING_SQLITE else nullcontext()

_ASYNC_LOCKS: WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]
_ASYNC_LOCKS = WeakKeyDictionary()
_ASYNC_LOCKS_GUARD = threading.Lock()


def _get_async_lock_for_current_loop() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    with _ASYNC_LOCKS_GUARD:
        lock = _ASYNC_LOCKS.get(loop)
        if lock is None:
            lock = asyncio.Lock()
            _ASYNC_LOCKS[loop] = lock
    return lock


@asynccontextmanager
async def _async_database_write_lock() -> AsyncIterator[None]:
    if USING_SQLITE:
        lock = _get_async_lock_for_current_loop()
        async with lock:
            yield
    else:
        yield

logger = logging.getLogger(__name__)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    with DATABASE_WRITE_LOCK:
        with Session(engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise


def init_db() -> None:
    """Initialise database tables."""

    # Import models lazily to avoid circular imports during module initialisation.
    from . import models  # noqa: F401  # pylint: disable=unused-import

    logger.info("Ensuring database tables are created")
    SQLModel.metadata.create_all(engine)
    _strip_price_history_snapshots()
    logger.info("Database tables confirmed")


def _strip_price_history_snapshots() -> None:
    """Clear card snapshots left in price history rows by older schemas."""

    inspector = inspect(engine)

    try:
        existing_columns = {
            column["name"] for column in inspector.get_columns("pricehistoryentry")
        }
    except NoSuchTableError:
        return

    if "snapshot" not in existing_columns:
        return

    with engine.begin() as connection:
        result = connection.execute(
            text("UPDATE pricehistoryentry SET snapshot = NULL WHERE snapshot IS NOT NULL")
        )
    if result.rowcount:
        logger.info("Stripped card snapshots from %s price history entries", result.rowcount)


def check_connection() -> bool:
    """Return True when a trivial query succeeds against the database."""

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
    return True


async def get_session() -> AsyncIterator[Session]:
    """FastAPI dependency returning a new SQLModel session."""

    async with _async_database_write_lock():
        with Session(engine) as session:
            yield session
