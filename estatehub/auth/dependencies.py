"""FastAPI providers for the authorization services."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.base_microservice import get_db_session
from estatehub.auth.authentication import AuthenticationService
from estatehub.auth.email_service import EmailSmtpService
from estatehub.auth.options import (
    IdentityOptions, JWTOptions, SmtpOptions,
    get_identity_options, get_jwt_options, get_smtp_options,
)
from estatehub.auth.sessions import SessionsService
from estatehub.auth.users import UserService


def get_email_service(options: SmtpOptions = Depends(get_smtp_options)) -> EmailSmtpService:
    return EmailSmtpService(options)


def get_authentication_service(
    db: AsyncSession = Depends(get_db_session),
    jwt_options: JWTOptions = Depends(get_jwt_options),
    identity_options: IdentityOptions = Depends(get_identity_options),
    email_service: EmailSmtpService = Depends(get_email_service),
) -> AuthenticationService:
    return AuthenticationService(db, jwt_options, identity_options, email_service)


def get_user_service(db: AsyncSession = Depends(get_db_session)) -> UserService:
    return UserService(db)


def get_sessions_service(db: AsyncSession = Depends(get_db_session)) -> SessionsService:
    return SessionsService(db)
