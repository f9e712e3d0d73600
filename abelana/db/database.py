"""
Database configuration with async support
"""

import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as AsyncSessionSQLModel

from abelana.core.config import settings
from abelana.core.exceptions import AbelanaError, StoreUnavailable, TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs for serialization failure and deadlock
_CONFLICT_SQLSTATES = {"40001", "40P01"}


def build_engine(url: str, echo: bool = False):
    kwargs = {"echo": echo, "future": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=20,
            max_overflow=30,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return create_async_engine(url, **kwargs)


async_engine = build_engine(settings.async_database_url, echo=settings.SQL_ECHO)

AsyncSessionLocal = sessionmaker(
    bind=async_engine,
    class_=AsyncSessionSQLModel,
    expire_on_commit=False,
    autoflush=False
)


async def init_db():
    """Initialize database tables"""
    import abelana.models  # noqa: F401  registers tables on the metadata

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Async database session dependency
    Usage:
    async def some_endpoint(db: AsyncSession = Depends(get_db)):
        ...
    """
    async with AsyncSessionLocal() as session:
        yield session


def _is_conflict(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        # A concurrent insert of the same key; the retry will observe it.
        return True
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    # SQLite reports writer contention as an OperationalError
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)


async def run_in_transaction(
    session: AsyncSession,
    fn: Callable[[AsyncSession], Awaitable[T]],
    *,
    retries: Optional[int] = None,
    operation: str = "transaction",
) -> T:
    """
    Run ``fn(session)`` and commit. Rolls back on any error.

    Integrity and serialization conflicts are retried up to ``retries`` times
    and then surface as TransactionConflict. Other driver errors surface as
    StoreUnavailable without retrying. Service errors raised by ``fn`` are
    re-raised unchanged.
    """
    attempts = retries if retries is not None else settings.TRANSACTION_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = await fn(session)
            await session.commit()
            return result
        except AbelanaError:
            await session.rollback()
            raise
        except DBAPIError as e:
            await session.rollback()
            if not _is_conflict(e):
                logger.error(f"{operation}: store error: {e}")
                raise StoreUnavailable(f"{operation}: {e.__class__.__name__}") from e
            logger.warning(f"{operation}: conflict on attempt {attempt}/{attempts}: {e}")
            if attempt == attempts:
                raise TransactionConflict(
                    f"{operation}: gave up after {attempts} attempts"
                ) from e
            await asyncio.sleep(0.01 * attempt)
        except Exception:
            await session.rollback()
            raise
