"""
Authentication middleware.

This module provides dependencies for:
- Bearer token validation backed by the session store
- Role-based access control
"""
from typing import List

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from estatehub.base_microservice import get_db_session
from estatehub.auth.errors import AuthorizationErrors, ServiceError, UserErrors
from estatehub.auth.jwt import UserInformation, decode_token, parse_user_information
from estatehub.auth.options import JWTOptions, get_jwt_options
from estatehub.auth.sessions import SessionsService
from estatehub.auth.users import UsersRepository

# OAuth2 scheme for JWT tokens
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
    jwt_options: JWTOptions = Depends(get_jwt_options),
) -> UserInformation:
    """
    FastAPI dependency to get the current authenticated user from token.

    The session named by the token must still exist, so logout, password reset
    and account deletion revoke access tokens immediately.

    Raises:
        ServiceError: If the token is missing, invalid, expired or revoked
    """
    if not token:
        raise ServiceError(AuthorizationErrors.invalid_access_token())

    try:
        payload = decode_token(token, jwt_options)
    except PyJWTError:
        raise ServiceError(AuthorizationErrors.invalid_access_token())

    information = parse_user_information(payload)
    if information.is_failure:
        raise ServiceError(*information.errors)

    session = await SessionsService(db).get_by_id(information.value.session_id)
    if session.is_failure:
        raise ServiceError(AuthorizationErrors.invalid_access_token())

    return information.value


class RBACMiddleware:
    """
    Role-Based Access Control middleware.

    Creates FastAPI dependencies for protecting routes based on the roles the
    user holds now, not the role embedded in the token.
    """

    @staticmethod
    def has_roles(roles: List[str]):
        """
        Dependency to check if the user has any of the specified roles.

        Args:
            roles: List of required role names (any match is sufficient)

        Returns:
            Dependency function
        """
        async def verify_roles(
            current_user: UserInformation = Depends(get_current_user),
            db: AsyncSession = Depends(get_db_session),
        ) -> UserInformation:
            user = await UsersRepository(db).get_by_id(current_user.user_id)
            if user is None:
                raise ServiceError(UserErrors.not_found_by_id(current_user.user_id))

            if not any(user.has_role(role) for role in roles):
                raise ServiceError(AuthorizationErrors.forbidden_role(roles))

            return current_user

        return verify_roles
