"""Transaction boundary for result-returning service operations."""
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.auth.errors import Result

T = TypeVar("T")

logger = logging.getLogger("estatehub.uow")


class UnitOfWork:
    """
    Runs an operation against a database session and finalises the
    transaction from its outcome:

    - success result: commit
    - failure result: rollback, the result is returned unchanged
    - unexpected exception: rollback, the exception propagates
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def execute(self, operation: Callable[[], Awaitable[Result[T]]]) -> Result[T]:
        try:
            result = await operation()
        except Exception:
            logger.exception("uow: rollback due to unexpected error")
            await self.db.rollback()
            raise

        if result.is_failure:
            logger.warning(f"uow: rollback due to {', '.join(e.code for e in result.errors)}")
            await self.db.rollback()
            return result

        try:
            await self.db.commit()
        except Exception:
            logger.exception("uow: exception while committing")
            await self.db.rollback()
            raise
        logger.debug("uow: committed")
        return result
