"""Database utility functions."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Error text fragments (SQLite and PostgreSQL) worth retrying
TRANSIENT_ERRORS = (
    "database is locked",
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
)


def is_transient_error(error: Exception) -> bool:
    """Whether a database error is likely to succeed on retry."""
    error_str = str(error).lower()
    return any(msg in error_str for msg in TRANSIENT_ERRORS)


async def retry_on_lock(
    session: AsyncSession,
    unit_of_work: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Run a unit of work that ends in a commit, retrying transient errors.

    A failed flush leaves the session needing a rollback, and the rollback
    discards pending objects and unflushed changes. So every attempt calls
    ``unit_of_work`` from the top: it must add its objects, apply its changes
    and commit, not just commit.

    Args:
        session: Session the unit of work writes through
        unit_of_work: Async callable doing the writes and the commit
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles with each retry)

    Returns:
        The result of the unit of work

    Raises:
        OperationalError: If all retries fail or error is not transient
    """
    for attempt in range(max_retries):
        try:
            return await unit_of_work()
        except (OperationalError, InterfaceError) as e:
            await session.rollback()
            if not is_transient_error(e) or attempt == max_retries - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(f"Database transient error, retrying in {delay}s (attempt {attempt + 1}/{max_retries})")
            await asyncio.sleep(delay)
