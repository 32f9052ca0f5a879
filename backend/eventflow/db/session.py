"""
Async engine and session management.

``Database`` is the connection pool handed to the coordinators. Every request
takes exactly one session (one pooled connection, one transaction) and hands
it back on every exit path: ``async with database.session() as session``
closes the session, and closing discards any uncommitted work.

SQLite has no row-level locks. For SQLite URLs every transaction is opened
with ``BEGIN IMMEDIATE`` so writers queue on the database lock for at most
LOCK_TIMEOUT_MS instead of failing mid-transaction with a lock upgrade
deadlock. This serializes all events, not just one, and is meant for local
development and tests; production runs on PostgreSQL row locks.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventflow.core.config import Settings
from eventflow.core.errors import BookingError, InternalError, LockTimeoutError
from eventflow.core.logging import get_logger
from eventflow.core.metrics import lock_timeouts
from eventflow.db.base import Base

logger = get_logger(__name__)

# PostgreSQL SQLSTATE raised when lock_timeout expires
LOCK_NOT_AVAILABLE = "55P03"


class Database:
    def __init__(
        self,
        url: str,
        *,
        lock_timeout_ms: int = 5000,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        echo: bool = False,
    ):
        self.url = make_url(url)
        self.lock_timeout_ms = lock_timeout_ms

        engine_kwargs = {"echo": echo}
        if self.is_sqlite:
            # sqlite3 busy timeout, in seconds
            engine_kwargs["connect_args"] = {"timeout": lock_timeout_ms / 1000}
        else:
            engine_kwargs.update(
                pool_pre_ping=True,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )

        self.engine = create_async_engine(self.url, **engine_kwargs)
        if self.is_sqlite:
            _use_immediate_transactions(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            lock_timeout_ms=settings.LOCK_TIMEOUT_MS,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            echo=settings.DEBUG,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        """Create tables directly. Development and tests only; use Alembic otherwise."""
        import eventflow.models  # noqa: F401 - register models on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def _use_immediate_transactions(engine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # SQLAlchemy emits BEGIN itself below
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig).lower()


@asynccontextmanager
async def storage_errors(operation: str, **context) -> AsyncIterator[None]:
    """
    Translate storage failures raised inside a unit of work into typed errors.

    Business errors pass through untouched. A lock wait that ran out becomes
    LockTimeoutError; any other SQLAlchemy failure becomes InternalError and
    is logged with its traceback.
    """
    try:
        yield
    except BookingError:
        raise
    except DBAPIError as exc:
        if is_lock_timeout(exc):
            lock_timeouts.inc()
            logger.warning("lock_timeout", operation=operation, **context)
            raise LockTimeoutError(f"Lock wait timed out during {operation}", **context) from exc
        logger.exception("storage_failure", operation=operation, **context)
        raise InternalError(f"Storage failure during {operation}", **context) from exc
    except SQLAlchemyError as exc:
        logger.exception("storage_failure", operation=operation, **context)
        raise InternalError(f"Storage failure during {operation}", **context) from exc


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request from the app's Database."""
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session


def dialect_name(session: AsyncSession) -> Optional[str]:
    bind = session.get_bind()
    return bind.dialect.name if bind is not None else None
