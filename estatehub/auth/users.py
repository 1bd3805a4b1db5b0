"""
User management service.

This module provides functionality for:
- Profile lookup, single and batch
- Profile updates with avatar validation
- Account soft deletion
- Administrative listing, statistics, roles and suspension
"""
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy import func, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.auth.domain import User, avatar_data_uri
from estatehub.auth.errors import AuthorizationErrors, Result, SessionErrors, UserErrors
from estatehub.auth.models import RoleEntity, Roles, UserEntity, utcnow
from estatehub.auth.schemas import (
    GetUserResponse, GetUserWithRolesResponse, UserUpdateRequest,
)
from estatehub.auth.sessions import SessionsRepository
from estatehub.auth.unit_of_work import UnitOfWork

logger = logging.getLogger("estatehub.users")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
SUSPENSION_PERIOD = timedelta(days=365)


class UserView(enum.Enum):
    """Projection returned by user lookups."""
    BASIC = "basic"
    WITH_ROLES = "with_roles"


def pick_token_role(role_names: Iterable[str]) -> Optional[str]:
    """Highest-privilege role of a user, the one embedded in tokens."""
    names = set(role_names)
    for role in Roles.PRIORITY:
        if role in names:
            return role
    return next(iter(sorted(names)), None)


def to_user_response(
    user: UserEntity, view: UserView = UserView.BASIC
) -> Union[GetUserResponse, GetUserWithRolesResponse]:
    fields = dict(
        id=user.id,
        email=user.email,
        user_name=user.user_name,
        display_name=user.display_name,
        phone_number=user.phone_number,
        country=user.country,
        city=user.city,
        address=user.address,
        postal_code=user.postal_code,
        company_name=user.company_name,
        website=user.website,
        last_active=user.last_active,
        is_deleted=user.is_deleted,
        deleted_at=user.deleted_at,
        avatar=avatar_data_uri(user.avatar_data, user.avatar_content_type),
    )
    if view == UserView.WITH_ROLES:
        return GetUserWithRolesResponse(roles=user.role_names, **fields)
    return GetUserResponse(**fields)


@dataclass(frozen=True)
class PagedResult:
    users: List[GetUserResponse]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class UserStats:
    total_users: int
    active_users: int
    suspended_users: int
    new_users_this_month: int


class UsersRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _visible(include_deleted: bool):
        return true() if include_deleted else UserEntity.is_deleted.is_(False)

    async def get_by_id(self, user_id: UUID, include_deleted: bool = False) -> Optional[UserEntity]:
        result = await self.db.execute(
            select(UserEntity).where(UserEntity.id == user_id, self._visible(include_deleted))
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[UserEntity]:
        result = await self.db.execute(
            select(UserEntity).where(UserEntity.email == email, self._visible(include_deleted))
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, user_ids: Sequence[UUID], include_deleted: bool = False) -> List[UserEntity]:
        result = await self.db.execute(
            select(UserEntity)
            .where(UserEntity.id.in_(list(user_ids)), self._visible(include_deleted))
            .order_by(UserEntity.created_at)
        )
        return list(result.scalars().all())

    async def get_users(self, page: int, page_size: int, include_deleted: bool) -> List[UserEntity]:
        result = await self.db.execute(
            select(UserEntity)
            .where(self._visible(include_deleted))
            .order_by(UserEntity.created_at)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all())

    async def _count(self, *conditions) -> int:
        result = await self.db.execute(select(func.count()).select_from(UserEntity).where(*conditions))
        return result.scalar_one()

    async def count_users(self, include_deleted: bool) -> int:
        return await self._count(self._visible(include_deleted))

    async def count_active(self) -> int:
        return await self._count(UserEntity.is_deleted.is_(False), UserEntity.lockout_end.is_(None))

    async def count_suspended(self) -> int:
        return await self._count(UserEntity.is_deleted.is_(False), UserEntity.lockout_end > utcnow())

    async def count_new_this_month(self) -> int:
        start_of_month = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return await self._count(UserEntity.is_deleted.is_(False), UserEntity.created_at >= start_of_month)

    async def get_role(self, name: str) -> Optional[RoleEntity]:
        result = await self.db.execute(select(RoleEntity).where(RoleEntity.name == name))
        return result.scalar_one_or_none()

    async def soft_delete(self, user: UserEntity) -> None:
        user.is_deleted = True
        user.deleted_at = utcnow()
        user.avatar_data = None
        user.avatar_content_type = None
        await self.db.flush()


class UserService:
    """
    Service for user management operations.
    """
    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UsersRepository(db)
        self.sessions = SessionsRepository(db)
        self.uow = UnitOfWork(db)

    async def get_by_id(
        self, user_id: UUID, include_deleted: bool = False, view: UserView = UserView.BASIC
    ) -> Result[GetUserResponse]:
        async def operation():
            user = await self.users.get_by_id(user_id, include_deleted)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))
            return Result.success(to_user_response(user, view))

        return await self.uow.execute(operation)

    async def get_by_ids(self, user_ids: List[UUID], include_deleted: bool = False) -> Result[List[GetUserResponse]]:
        async def operation():
            if not user_ids:
                return Result.failure(UserErrors.not_found_by_ids(user_ids))
            users = await self.users.get_by_ids(user_ids, include_deleted)
            if not users:
                return Result.failure(UserErrors.not_found_by_ids(user_ids))
            return Result.success([to_user_response(user) for user in users])

        return await self.uow.execute(operation)

    async def update_by_id(self, user_id: UUID, request: UserUpdateRequest) -> Result[None]:
        """
        Update profile fields of a user.

        Args:
            user_id: Account to update
            request: New values; a blank display name keeps the current one

        Returns:
            Empty success, or the validation / lookup failure
        """
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))

            display_name = request.display_name
            if display_name is None or not display_name.strip():
                display_name = user.display_name

            validation = User.update(user.id, display_name, request.avatar_data, request.avatar_content_type)
            if validation.is_failure:
                return Result.failure(*validation.errors)

            user.display_name = validation.value.display_name
            if validation.value.avatar_data is not None:
                user.avatar_data = validation.value.avatar_data
                user.avatar_content_type = validation.value.avatar_content_type
            user.phone_number = request.phone_number
            user.country = request.country
            user.city = request.city
            user.address = request.address
            user.postal_code = request.postal_code
            user.company_name = request.company_name
            user.website = request.website
            await self.db.flush()
            return Result.success()

        return await self.uow.execute(operation)

    async def delete_by_id(self, user_id: UUID) -> Result[None]:
        """Soft-delete an account and revoke all of its sessions."""
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))
            await self.users.soft_delete(user)
            if not await self.sessions.delete_by_user_id(user_id):
                return Result.failure(SessionErrors.deletion_failed_by_user_id(user_id))
            return Result.success()

        return await self.uow.execute(operation)

    # --- Admin ---

    async def get_users(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE, include_deleted: bool = False
    ) -> Result[PagedResult]:
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        async def operation():
            users = await self.users.get_users(page, page_size, include_deleted)
            total = await self.users.count_users(include_deleted)
            return Result.success(PagedResult(
                users=[to_user_response(user) for user in users],
                total=total,
                page=page,
                page_size=page_size,
            ))

        return await self.uow.execute(operation)

    async def get_user_stats(self) -> Result[UserStats]:
        async def operation():
            return Result.success(UserStats(
                total_users=await self.users.count_users(False),
                active_users=await self.users.count_active(),
                suspended_users=await self.users.count_suspended(),
                new_users_this_month=await self.users.count_new_this_month(),
            ))

        return await self.uow.execute(operation)

    async def assign_role(self, user_id: UUID, role_name: str) -> Result[None]:
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))
            role = await self.users.get_role(role_name)
            if role is None:
                return Result.failure(AuthorizationErrors.invalid_role())
            if not user.has_role(role.name):
                user.roles.append(role)
                await self.db.flush()
            return Result.success()

        return await self.uow.execute(operation)

    async def remove_role(self, user_id: UUID, role_name: str, current_user_id: Optional[UUID] = None) -> Result[None]:
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))

            if (
                current_user_id == user_id
                and role_name.lower() == Roles.ADMIN.lower()
                and user.has_role(Roles.ADMIN)
            ):
                return Result.failure(UserErrors.cannot_remove_own_admin_role())

            role = next((r for r in user.roles if r.name.lower() == role_name.lower()), None)
            if role is None:
                return Result.failure(UserErrors.user_not_added_to_role())
            user.roles.remove(role)
            await self.db.flush()
            return Result.success()

        return await self.uow.execute(operation)

    async def suspend_user(self, user_id: UUID, reason: str = "") -> Result[None]:
        """Lock the account for a year and revoke its sessions."""
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))
            user.lockout_end = utcnow() + SUSPENSION_PERIOD
            await self.sessions.delete_by_user_id(user_id)
            await self.db.flush()
            logger.info(f"Suspended user {user_id}: {reason or 'no reason given'}")
            return Result.success()

        return await self.uow.execute(operation)

    async def activate_user(self, user_id: UUID) -> Result[None]:
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(user_id))
            user.lockout_end = None
            await self.db.flush()
            return Result.success()

        return await self.uow.execute(operation)

    async def admin_delete_user(self, user_id: UUID) -> Result[None]:
        """Soft-delete any account, the caller's own included, and revoke its sessions."""
        async def operation():
            user = await self.users.get_by_id(user_id)
            if user is None:
                return Result.failure(UserErrors.deletion_failed(user_id))
            await self.users.soft_delete(user)
            await self.sessions.delete_by_user_id(user_id)
            return Result.success()

        return await self.uow.execute(operation)
