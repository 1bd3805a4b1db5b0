"""
Identity subsystem.

Owns credential storage and the single-purpose tokens mailed to users:
- Account creation with password hashing and role assignment
- Password checks for login
- E-mail confirmation, password reset and account action tokens
- Role and administrator seeding

Purpose tokens are HS256 JWTs bound to the user id and the current security
stamp, so rotating the stamp invalidates every outstanding token.
"""
import enum
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import PyJWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.auth.domain import User
from estatehub.auth.errors import AuthorizationErrors, Result, UserErrors
from estatehub.auth.jwt import ALGORITHM
from estatehub.auth.models import RoleEntity, Roles, UserEntity, utcnow
from estatehub.auth.options import IdentityOptions, JWTOptions

logger = logging.getLogger("estatehub.identity")

MIN_PASSWORD_LENGTH = 6


class AccountActionType(str, enum.Enum):
    RECOVER = "Recover"
    HARD_DELETE = "HardDelete"


class TokenPurpose:
    EMAIL_CONFIRMATION = "EmailConfirmation"
    RESET_PASSWORD = "ResetPassword"
    RECOVER_ACCOUNT = "RecoverAccount"


def check_password_policy(password: str) -> Optional[str]:
    """Return a user-facing message when the password is too weak."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters."
    if not any(c.islower() for c in password):
        return "Passwords must have at least one lowercase ('a'-'z')."
    return None


class IdentityService:
    def __init__(self, db: AsyncSession, jwt_options: JWTOptions, identity_options: IdentityOptions):
        self.db = db
        self.jwt_options = jwt_options
        self.identity_options = identity_options

    # --- Accounts ---

    async def get_role(self, name: str) -> Optional[RoleEntity]:
        result = await self.db.execute(select(RoleEntity).where(RoleEntity.name == name))
        return result.scalar_one_or_none()

    async def register(self, user: User, role_name: str = Roles.USER) -> Result[UserEntity]:
        """
        Persist a validated user with a hashed password and one role.

        The e-mail is confirmed right away unless the account policy requires
        confirmation.
        """
        weakness = check_password_policy(user.password)
        if weakness:
            logger.error(f"{UserErrors.user_not_created()} | {weakness}")
            return Result.failure(UserErrors.invalid_password().with_user_message(weakness))

        taken = await self.db.execute(select(UserEntity.id).where(UserEntity.user_name == user.user_name))
        if taken.first() is not None:
            logger.error(f"{UserErrors.user_not_created()} | duplicate user name {user.user_name}")
            return Result.failure(
                replace(UserErrors.user_not_created(), status=400)
                .with_user_message(f"Username '{user.user_name}' is already taken.")
            )

        role = await self.get_role(role_name)
        if role is None:
            role = RoleEntity(name=role_name)
            self.db.add(role)

        entity = UserEntity(
            id=user.id or uuid.uuid4(),
            email=user.email,
            user_name=user.user_name,
            display_name=user.display_name,
            hashed_password=UserEntity.get_password_hash(user.password),
            email_confirmed=not self.identity_options.require_confirmed_account,
            security_stamp=uuid.uuid4().hex,
            created_at=utcnow(),
        )
        entity.roles.append(role)
        self.db.add(entity)
        await self.db.flush()
        return Result.success(entity)

    def check_password(self, user: Optional[UserEntity], password: str) -> Result[None]:
        if user is None:
            logger.error(str(AuthorizationErrors.incorrect_password_or_username()))
            return Result.failure(AuthorizationErrors.incorrect_password_or_username())

        if self.identity_options.require_confirmed_account and not user.email_confirmed:
            logger.error(str(AuthorizationErrors.email_not_confirmed()))
            return Result.failure(AuthorizationErrors.email_not_confirmed())

        if not user.verify_password(password):
            logger.error(str(AuthorizationErrors.incorrect_password_or_username()))
            return Result.failure(AuthorizationErrors.incorrect_password_or_username())

        if not user.roles:
            logger.error(str(AuthorizationErrors.invalid_role()))
            return Result.failure(AuthorizationErrors.invalid_role())

        return Result.success()

    async def update_security_stamp(self, user: UserEntity) -> None:
        user.security_stamp = uuid.uuid4().hex
        await self.db.flush()

    # --- Purpose tokens ---

    def generate_token(self, user: UserEntity, purpose: str) -> str:
        expires = datetime.now(timezone.utc) + timedelta(hours=self.identity_options.token_lifetime_hours)
        to_encode = {
            "sub": str(user.id),
            "purpose": purpose,
            "stamp": user.security_stamp,
            "exp": expires,
        }
        return jwt.encode(to_encode, self.jwt_options.secret, algorithm=ALGORITHM)

    def verify_token(self, user: UserEntity, purpose: str, token: str) -> bool:
        try:
            payload = jwt.decode(token, self.jwt_options.secret, algorithms=[ALGORITHM])
        except PyJWTError:
            return False
        return (
            payload.get("sub") == str(user.id)
            and payload.get("purpose") == purpose
            and payload.get("stamp") == user.security_stamp
        )

    def generate_email_confirmation_token(self, user: UserEntity) -> str:
        return self.generate_token(user, TokenPurpose.EMAIL_CONFIRMATION)

    async def confirm_email(self, user: UserEntity, token: str) -> Result[None]:
        if not self.verify_token(user, TokenPurpose.EMAIL_CONFIRMATION, token):
            logger.error(f"{AuthorizationErrors.email_not_confirmed()} | invalid confirmation token")
            return Result.failure(AuthorizationErrors.email_not_confirmed())
        user.email_confirmed = True
        await self.db.flush()
        return Result.success()

    def generate_password_reset_token(self, user: UserEntity) -> Result[str]:
        if not user.email_confirmed:
            logger.error(str(AuthorizationErrors.email_not_confirmed()))
            return Result.failure(AuthorizationErrors.email_not_confirmed())
        return Result.success(self.generate_token(user, TokenPurpose.RESET_PASSWORD))

    async def reset_password(self, user: UserEntity, token: str, password: str) -> Result[None]:
        weakness = check_password_policy(password)
        if weakness:
            return Result.failure(UserErrors.invalid_password().with_user_message(weakness))

        if not self.verify_token(user, TokenPurpose.RESET_PASSWORD, token):
            logger.error(f"{AuthorizationErrors.incorrect_password_or_username()} | invalid reset token")
            return Result.failure(AuthorizationErrors.incorrect_password_or_username())

        user.hashed_password = UserEntity.get_password_hash(password)
        user.security_stamp = uuid.uuid4().hex
        await self.db.flush()
        return Result.success()

    def generate_account_action_token(self, user: UserEntity, action: AccountActionType) -> Result[str]:
        if not user.email_confirmed:
            logger.error(str(AuthorizationErrors.email_not_confirmed()))
            return Result.failure(AuthorizationErrors.email_not_confirmed())
        if action != AccountActionType.RECOVER:
            return Result.failure(AuthorizationErrors.not_found_account_action())
        return Result.success(self.generate_token(user, TokenPurpose.RECOVER_ACCOUNT))

    async def confirm_account_action(self, user: UserEntity, token: str, action: AccountActionType) -> Result[None]:
        if action != AccountActionType.RECOVER:
            return Result.failure(AuthorizationErrors.not_found_account_action())

        if not self.verify_token(user, TokenPurpose.RECOVER_ACCOUNT, token):
            logger.error(str(AuthorizationErrors.invalid_token()))
            return Result.failure(AuthorizationErrors.invalid_token())

        user.security_stamp = uuid.uuid4().hex
        user.is_deleted = False
        user.deleted_at = None
        await self.db.flush()
        return Result.success()


async def seed_identity(db: AsyncSession, admin_email: Optional[str] = None, admin_password: Optional[str] = None):
    """Create the fixed roles and, when configured, an administrator account."""
    existing = set((await db.execute(select(RoleEntity.name))).scalars().all())
    for name in Roles.PRIORITY:
        if name not in existing:
            db.add(RoleEntity(name=name))
            logger.info(f"Created role: {name}")
    await db.flush()

    if admin_email and admin_password:
        result = await db.execute(select(UserEntity).where(UserEntity.email == admin_email))
        if result.scalar_one_or_none() is None:
            admin_role = (await db.execute(select(RoleEntity).where(RoleEntity.name == Roles.ADMIN))).scalar_one()
            admin_id = uuid.uuid4()
            admin = UserEntity(
                id=admin_id,
                email=admin_email,
                user_name=f"{admin_email}_{admin_id.hex[:8]}",
                display_name="Administrator",
                hashed_password=UserEntity.get_password_hash(admin_password),
                email_confirmed=True,
                security_stamp=uuid.uuid4().hex,
                created_at=utcnow(),
            )
            admin.roles.append(admin_role)
            db.add(admin)
            logger.info(f"Created administrator account: {admin_email}")

    await db.commit()
