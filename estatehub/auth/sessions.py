"""
Session store.

One row per logged-in device. Rows are looked up by id (the ``sessionId``
claim) or by refresh token, updated in place on refresh and deleted on
logout, password reset or account deletion.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.auth.domain import Session
from estatehub.auth.errors import Result, SessionErrors
from estatehub.auth.models import SessionEntity

logger = logging.getLogger("estatehub.sessions")


@dataclass(frozen=True)
class SessionDto:
    id: UUID
    user_id: UUID
    access_token: str
    refresh_token: str
    expiration_date: datetime

    @classmethod
    def from_entity(cls, entity: SessionEntity) -> "SessionDto":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            access_token=entity.access_token,
            refresh_token=entity.refresh_token,
            expiration_date=entity.expiration_date,
        )


class SessionsRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, session_id: UUID) -> Optional[SessionDto]:
        entity = await self.db.get(SessionEntity, session_id)
        return SessionDto.from_entity(entity) if entity else None

    async def get_by_refresh_token(self, refresh_token: str) -> Optional[SessionDto]:
        result = await self.db.execute(
            select(SessionEntity).where(SessionEntity.refresh_token == refresh_token)
        )
        entity = result.scalar_one_or_none()
        return SessionDto.from_entity(entity) if entity else None

    async def create(self, session: Session) -> SessionDto:
        entity = SessionEntity(
            id=session.id or uuid.uuid4(),
            user_id=session.user_id,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expiration_date=session.expiration_date,
        )
        self.db.add(entity)
        await self.db.flush()
        return SessionDto.from_entity(entity)

    async def update(self, session: Session) -> bool:
        """
        Overwrite tokens and expiration of the row with the same id.

        Raises:
            sqlalchemy.orm.exc.StaleDataError: If another transaction changed
                the row after it was loaded
        """
        entity = await self.db.get(SessionEntity, session.id)
        if entity is None:
            return False
        entity.access_token = session.access_token
        entity.refresh_token = session.refresh_token
        entity.expiration_date = session.expiration_date
        await self.db.flush()
        return True

    async def delete(self, refresh_token: str) -> bool:
        result = await self.db.execute(
            delete(SessionEntity).where(SessionEntity.refresh_token == refresh_token)
        )
        return result.rowcount > 0

    async def delete_by_user_id(self, user_id: UUID) -> bool:
        # A user without sessions is not an error.
        result = await self.db.execute(
            delete(SessionEntity).where(SessionEntity.user_id == user_id)
        )
        logger.debug(f"Deleted {result.rowcount} sessions of user {user_id}")
        return True


class SessionsService:
    def __init__(self, db: AsyncSession):
        self.repository = SessionsRepository(db)

    async def get_by_id(self, session_id: Optional[UUID]) -> Result[SessionDto]:
        if session_id is None or session_id == UUID(int=0):
            return Result.failure(SessionErrors.not_found(session_id))
        session = await self.repository.get_by_id(session_id)
        if session is None:
            return Result.failure(SessionErrors.not_found(session_id))
        return Result.success(session)
