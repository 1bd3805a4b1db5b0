"""
JWT token handling for authentication.

This module provides functionality for:
- Creating access and refresh tokens for a session
- Validating tokens
- Reading the user information embedded in a token
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from uuid import UUID

import jwt
from jwt.exceptions import ExpiredSignatureError, PyJWTError
from pydantic import BaseModel

from estatehub.auth.errors import AuthorizationErrors, Result
from estatehub.auth.options import JWTOptions, DEFAULT_EXPIRATION_MINUTES

ALGORITHM = "HS256"
REFRESH_TOKEN_EXPIRE_DAYS = 30

NAME_CLAIM = "name"
USER_ID_CLAIM = "sub"
ROLE_CLAIM = "role"
SESSION_ID_CLAIM = "sessionId"


class UserInformation(BaseModel):
    """Token payload model."""
    name: str
    user_id: UUID
    role: str
    session_id: UUID


class TokenResult(BaseModel):
    """Encoded token with its expiration (naive UTC)."""
    token: str
    expiration_date: datetime


def _encode(info: UserInformation, options: JWTOptions, lifetime: timedelta) -> TokenResult:
    issued_at = datetime.now(timezone.utc)
    expires = issued_at + lifetime
    to_encode: Dict[str, Any] = {
        NAME_CLAIM: info.name,
        USER_ID_CLAIM: str(info.user_id),
        ROLE_CLAIM: info.role,
        SESSION_ID_CLAIM: str(info.session_id),
        "iat": issued_at,
        "exp": expires,
        # Two tokens minted within the same second must still differ.
        "jti": uuid.uuid4().hex,
    }
    if options.issuer:
        to_encode["iss"] = options.issuer
    if options.audience:
        to_encode["aud"] = options.audience
    encoded_jwt = jwt.encode(to_encode, options.secret, algorithm=ALGORITHM)
    return TokenResult(token=encoded_jwt, expiration_date=expires.replace(tzinfo=None))


def create_access_token(info: UserInformation, options: JWTOptions) -> TokenResult:
    """
    Create a short-lived access token.

    Args:
        info: Identity and session carried by the token
        options: Signing settings; a non-positive lifetime falls back to the default

    Returns:
        TokenResult with the encoded token and its expiration
    """
    minutes = options.expiration_minutes
    if minutes <= 0:
        minutes = DEFAULT_EXPIRATION_MINUTES
    return _encode(info, options, timedelta(minutes=minutes))


def create_refresh_token(info: UserInformation, options: JWTOptions) -> TokenResult:
    """
    Create a refresh token with the same claims and a fixed 30-day lifetime.
    """
    return _encode(info, options, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str, options: JWTOptions) -> Dict[str, Any]:
    """
    Verify signature, expiry and, when configured, issuer and audience.

    Raises:
        jwt.PyJWTError: If any check fails
    """
    return jwt.decode(
        token,
        options.secret,
        algorithms=[ALGORITHM],
        issuer=options.issuer,
        audience=options.audience,
        options={"require": ["exp"]},
    )


def _parse_uuid(value: Any) -> UUID:
    parsed = UUID(str(value))
    if parsed.int == 0:
        raise ValueError("empty uuid")
    return parsed


def parse_user_information(payload: Dict[str, Any]) -> Result[UserInformation]:
    """
    Build UserInformation from decoded claims, collecting every problem.
    """
    problems: List[str] = []

    user_id = None
    raw_user_id = payload.get(USER_ID_CLAIM)
    if raw_user_id is None or not str(raw_user_id).strip():
        problems.append("user id claim is missing")
    else:
        try:
            user_id = _parse_uuid(raw_user_id)
        except ValueError:
            problems.append("user id claim is not a valid identifier")

    session_id = None
    raw_session_id = payload.get(SESSION_ID_CLAIM)
    if raw_session_id is None or not str(raw_session_id).strip():
        problems.append("session id claim is missing")
    else:
        try:
            session_id = _parse_uuid(raw_session_id)
        except ValueError:
            problems.append("session id claim is not a valid identifier")

    role = payload.get(ROLE_CLAIM)
    if not role:
        problems.append("role claim is missing")

    name = payload.get(NAME_CLAIM)
    if not name:
        problems.append("name claim is missing")

    if problems:
        return Result.failure(AuthorizationErrors.invalid_token("Token is invalid: " + "; ".join(problems)))

    return Result.success(UserInformation(name=name, user_id=user_id, role=role, session_id=session_id))


def read_user_information(token: str, options: JWTOptions) -> Result[UserInformation]:
    """
    Decode a token and parse its claims.

    An expired token maps to RefreshTokenExpired, any other decode problem to
    InvalidToken.
    """
    try:
        payload = decode_token(token, options)
    except ExpiredSignatureError:
        return Result.failure(AuthorizationErrors.refresh_token_expired())
    except PyJWTError:
        return Result.failure(AuthorizationErrors.invalid_token())
    return parse_user_information(payload)
