"""
Database configuration and session management.
Uses SQLAlchemy 2.0 with async support.
"""
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from cipherpost.config import settings
from cipherpost.core.exceptions import TransientFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    # SQLite uses a static/singleton pool that rejects sizing arguments
    if not settings.is_sqlite:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_options())

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def is_transient_error(exc: BaseException) -> bool:
    """Whether a storage error is worth retrying with a fresh transaction."""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
) -> T:
    """
    Run ``operation`` and commit, all-or-nothing.

    Any exception rolls the whole transaction back so no partial write is ever
    visible. Transient storage failures re-run the operation from scratch up to
    ``attempts`` times before surfacing TransientFailureError; everything else
    propagates unchanged after the rollback.

    Args:
        db: Session the operation writes through
        operation: Zero-argument coroutine function performing reads and writes
        attempts: Maximum attempts (defaults to settings.transaction_retry_attempts)

    Returns:
        Whatever ``operation`` returned on the committed attempt
    """
    max_attempts = attempts or settings.transaction_retry_attempts

    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
            await db.commit()
            return result
        except Exception as exc:
            await db.rollback()
            if not is_transient_error(exc):
                raise
            logger.warning(
                "Transient storage failure (attempt %d/%d): %s",
                attempt,
                max_attempts,
                type(exc).__name__,
            )
            if attempt == max_attempts:
                raise TransientFailureError() from exc

    # Unreachable: the loop either returns or raises
    raise TransientFailureError()
