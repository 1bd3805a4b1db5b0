"""
Authentication orchestration.

Every public method runs inside a unit of work and returns a ``Result``:
login, registration, e-mail confirmation, account recovery, password reset,
access token refresh and logout.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from estatehub.auth.domain import Session, User, as_naive_utc, avatar_data_uri
from estatehub.auth.email_service import EmailSmtpService
from estatehub.auth.errors import AuthorizationErrors, Result, SessionErrors, UserErrors
from estatehub.auth.identity import IdentityService
from estatehub.auth.jwt import (
    UserInformation, create_access_token, create_refresh_token, read_user_information,
)
from estatehub.auth.models import UserEntity, utcnow
from estatehub.auth.options import IdentityOptions, JWTOptions
from estatehub.auth.schemas import (
    AuthenticationResponse, ConfirmAccountActionRequest, ConfirmEmailRequest,
    ForgotPasswordRequest, LoginRequest, ManageAccountRequest, ResetPasswordRequest,
    UserRegistrationRequest,
)
from estatehub.auth.sessions import SessionsRepository
from estatehub.auth.unit_of_work import UnitOfWork
from estatehub.auth.users import UsersRepository, pick_token_role

logger = logging.getLogger("estatehub.authentication")


@dataclass(frozen=True)
class AuthenticationResult:
    """Outcome of a successful login; the refresh token never leaves via the body."""
    id: UUID
    email: str
    display_name: str
    role: str
    access_token: str
    refresh_token: str
    avatar: str = ""

    def to_response(self) -> AuthenticationResponse:
        return AuthenticationResponse(
            id=self.id,
            email=self.email,
            display_name=self.display_name,
            role=self.role,
            access_token=self.access_token,
            avatar=self.avatar,
        )


class AuthenticationService:
    def __init__(
        self,
        db: AsyncSession,
        jwt_options: JWTOptions,
        identity_options: IdentityOptions,
        email_service: EmailSmtpService,
    ):
        self.db = db
        self.jwt_options = jwt_options
        self.identity_options = identity_options
        self.email_service = email_service
        self.users = UsersRepository(db)
        self.sessions = SessionsRepository(db)
        self.identity = IdentityService(db, jwt_options, identity_options)
        self.uow = UnitOfWork(db)

    async def _create_user_session(self, user: UserEntity) -> Result[AuthenticationResult]:
        role = pick_token_role(user.role_names)
        if role is None:
            return Result.failure(AuthorizationErrors.invalid_role())

        session_id = uuid.uuid4()
        info = UserInformation(name=user.user_name, user_id=user.id, role=role, session_id=session_id)
        access = create_access_token(info, self.jwt_options)
        refresh = create_refresh_token(info, self.jwt_options)

        session = Session.create(user.id, access.token, refresh.token, refresh.expiration_date)
        if session.is_failure:
            return Result.failure(*session.errors)
        await self.sessions.create(session.value.with_id(session_id))

        user.last_active = utcnow()
        await self.db.flush()

        return Result.success(AuthenticationResult(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=role,
            access_token=access.token,
            refresh_token=refresh.token,
            avatar=avatar_data_uri(user.avatar_data, user.avatar_content_type),
        ))

    async def _login(self, email: str, password: str) -> Result[AuthenticationResult]:
        user = await self.users.get_by_email(email, include_deleted=True)
        if user is None:
            logger.error(str(AuthorizationErrors.incorrect_password_or_username()))
            return Result.failure(AuthorizationErrors.incorrect_password_or_username())
        if user.is_deleted:
            return Result.failure(UserErrors.user_is_deleted(email))
        if user.is_suspended:
            return Result.failure(UserErrors.user_suspended(email))

        checked = self.identity.check_password(user, password)
        if checked.is_failure:
            return Result.failure(*checked.errors)

        return await self._create_user_session(user)

    async def login(self, request: LoginRequest) -> Result[AuthenticationResult]:
        """
        Authenticate by e-mail and password and open a new session.

        Args:
            request: Login credentials

        Returns:
            AuthenticationResult with fresh access and refresh tokens
        """
        return await self.uow.execute(lambda: self._login(request.email, request.password))

    async def register(self, request: UserRegistrationRequest) -> Result[Optional[AuthenticationResult]]:
        """
        Create an account with the ``User`` role.

        When confirmation is not required the account is confirmed and logged
        in within the same transaction. Otherwise a confirmation link is mailed
        to ``callback_url`` and the success value is None: no session exists
        until the e-mail is confirmed.
        """
        async def operation():
            existing = await self.users.get_by_email(request.email, include_deleted=True)
            if existing is not None:
                if existing.is_deleted:
                    return Result.failure(UserErrors.user_is_deleted(request.email))
                return Result.failure(UserErrors.email_not_unique())

            requires_confirmation = self.identity_options.require_confirmed_account
            if requires_confirmation and not (request.callback_url or "").strip():
                return Result.failure(AuthorizationErrors.callback_is_null())

            validated = User.create(request.email, request.display_name, request.user_name, request.password)
            if validated.is_failure:
                return Result.failure(*validated.errors)

            registered = await self.identity.register(validated.value)
            if registered.is_failure:
                return Result.failure(*registered.errors)
            user = registered.value

            if not requires_confirmation:
                return await self._login(request.email, request.password)

            token = self.identity.generate_email_confirmation_token(user)
            sent = await self.email_service.send_email_confirmation(user.email, token, request.callback_url, user.id)
            if sent.is_failure:
                return Result.failure(*sent.errors)
            return Result.success(None)

        return await self.uow.execute(operation)

    async def confirm_email(self, request: ConfirmEmailRequest) -> Result[AuthenticationResult]:
        async def operation():
            user = await self.users.get_by_id(request.user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(request.user_id))

            confirmed = await self.identity.confirm_email(user, request.token)
            if confirmed.is_failure:
                return Result.failure(*confirmed.errors)

            return await self._create_user_session(user)

        return await self.uow.execute(operation)

    async def manage_account_state(self, request: ManageAccountRequest) -> Result[None]:
        """Mail an account action link (recovery) to a soft-deleted account."""
        async def operation():
            user = await self.users.get_by_email(request.email, include_deleted=True)
            if user is None or not user.is_deleted:
                error = UserErrors.not_found_by_email(request.email)
                logger.error(str(error))
                return Result.failure(error)

            token = self.identity.generate_account_action_token(user, request.action_type)
            if token.is_failure:
                return Result.failure(*token.errors)

            sent = await self.email_service.send_account_action_token(
                user.email, token.value, request.return_url, request.action_type, user.id
            )
            if sent.is_failure:
                return Result.failure(*sent.errors)
            return Result.success()

        return await self.uow.execute(operation)

    async def confirm_account_action(self, request: ConfirmAccountActionRequest) -> Result[None]:
        async def operation():
            user = await self.users.get_by_id(request.user_id, include_deleted=True)
            if user is None or not user.is_deleted:
                return Result.failure(UserErrors.not_found_by_id(request.user_id))

            return await self.identity.confirm_account_action(user, request.token, request.action_type)

        return await self.uow.execute(operation)

    async def forgot_password(self, request: ForgotPasswordRequest) -> Result[None]:
        async def operation():
            user = await self.users.get_by_email(request.email)
            if user is None:
                logger.error(str(AuthorizationErrors.incorrect_password_or_username()))
                return Result.failure(AuthorizationErrors.incorrect_password_or_username())

            token = self.identity.generate_password_reset_token(user)
            if token.is_failure:
                return Result.failure(*token.errors)

            sent = await self.email_service.send_forget_password_token(
                user.email, token.value, request.return_url, user.id
            )
            if sent.is_failure:
                return Result.failure(*sent.errors)
            return Result.success()

        return await self.uow.execute(operation)

    async def reset_password(self, request: ResetPasswordRequest) -> Result[None]:
        """Replace the password and revoke every session of the user."""
        async def operation():
            user = await self.users.get_by_id(request.user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(request.user_id))

            validated = User.create(user.email, user.display_name, user.user_name, request.password)
            if validated.is_failure:
                return Result.failure(*validated.errors)

            reset = await self.identity.reset_password(user, request.token, request.password)
            if reset.is_failure:
                return Result.failure(*reset.errors)

            if not await self.sessions.delete_by_user_id(user.id):
                return Result.failure(SessionErrors.deletion_failed_by_user_id(user.id))
            return Result.success()

        return await self.uow.execute(operation)

    async def refresh_access_token(self, refresh_token: str) -> Result[AuthenticationResponse]:
        """
        Mint a new access token for the session owning ``refresh_token``.

        The refresh token and its expiration are carried over unchanged; only
        the access token of the row is replaced.
        """
        async def operation():
            information = read_user_information(refresh_token, self.jwt_options)
            if information.is_failure:
                return Result.failure(*information.errors)
            info = information.value

            user = await self.users.get_by_id(info.user_id)
            if user is None:
                return Result.failure(UserErrors.not_found_by_id(info.user_id))

            session = await self.sessions.get_by_refresh_token(refresh_token)
            if session is None:
                return Result.failure(SessionErrors.not_found_by_refresh_token())

            if session.user_id != info.user_id:
                logger.error(str(AuthorizationErrors.user_ids_not_equals(session.user_id, info.user_id)))
                return Result.failure(AuthorizationErrors.not_found_refresh_token())

            if session.id != info.session_id:
                logger.error(str(AuthorizationErrors.session_ids_not_equals(session.id, info.session_id)))
                return Result.failure(AuthorizationErrors.not_found_refresh_token())

            if as_naive_utc(session.expiration_date) < utcnow():
                return Result.failure(AuthorizationErrors.refresh_token_expired())

            access = create_access_token(info, self.jwt_options)
            updated = Session.create(user.id, access.token, session.refresh_token, session.expiration_date)
            if updated.is_failure:
                return Result.failure(*updated.errors)

            try:
                if not await self.sessions.update(updated.value.with_id(session.id)):
                    return Result.failure(SessionErrors.not_found(session.id))
            except StaleDataError:
                logger.warning(f"Concurrent refresh of session {session.id}")
                return Result.failure(SessionErrors.concurrent_update())

            return Result.success(AuthenticationResponse(
                id=user.id,
                email=user.email,
                display_name=user.display_name,
                role=info.role,
                access_token=access.token,
                avatar=avatar_data_uri(user.avatar_data, user.avatar_content_type),
            ))

        return await self.uow.execute(operation)

    async def logout(self, refresh_token: str) -> Result[None]:
        async def operation():
            session = await self.sessions.get_by_refresh_token(refresh_token)
            if session is None:
                return Result.failure(SessionErrors.not_found_by_refresh_token())
            if not await self.sessions.delete(refresh_token):
                return Result.failure(AuthorizationErrors.logout_error())
            return Result.success()

        return await self.uow.execute(operation)
