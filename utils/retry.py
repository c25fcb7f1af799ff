"""Bounded retry for database operations."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0

def is_transient(error: BaseException) -> bool:
    """Whether a database error is a connection failure worth retrying."""
    if isinstance(error, PoolTimeoutError):
        # Acquire timeouts fail fast instead of queuing again
        return False
    if isinstance(error, DisconnectionError):
        return True
    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True
        return "database is locked" in str(error.orig).lower()
    return False

async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> T:
    """Run ``operation`` retrying transient connection failures.

    The wait between attempts grows linearly (``retry_delay * attempt``).
    Non-transient database errors, and transient ones that outlast the retry
    budget, are raised as PersistenceError. Any other exception propagates
    unchanged.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except SQLAlchemyError as e:
            if not is_transient(e):
                raise PersistenceError(f"Database operation failed: {e}") from e
            if attempt >= max_retries:
                raise PersistenceError(
                    f"Database operation failed after {attempt} attempts: {e}"
                ) from e
            logger.warning(f"Database operation failed, attempt {attempt}/{max_retries}: {e}")
            await asyncio.sleep(retry_delay * attempt)
            attempt += 1
