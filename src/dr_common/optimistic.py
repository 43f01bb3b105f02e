"""Bounded retry loop for version-guarded (compare-and-swap) row updates.

Repositories signal a lost CAS by raising StaleVersionError. The loop rolls
the session back, re-runs the whole attempt (re-reading the row) and gives
up with ConcurrencyConflictError once the attempt budget is spent.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StaleVersionError(Exception):
    """Raised by a repository when `UPDATE ... WHERE version = :version` hit 0 rows."""

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(f"stale version on {resource}")


async def run_optimistic(
    db: AsyncSession,
    attempt: Callable[[], Awaitable[T]],
    max_attempts: int,
    resource: str,
) -> T:
    """Run `attempt` and commit; on StaleVersionError roll back and retry.

    Any other exception rolls back and propagates unchanged.
    """
    for n in range(1, max_attempts + 1):
        try:
            result = await attempt()
            await db.commit()
            return result
        except StaleVersionError:
            await db.rollback()
            logger.warning("CAS conflict on %s (attempt %d/%d)", resource, n, max_attempts)
        except Exception:
            await db.rollback()
            raise
    raise ConcurrencyConflictError(resource, max_attempts)
