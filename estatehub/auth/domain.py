"""
Domain values with their construction rules.

``Session.create`` and ``User.create`` / ``User.update`` never raise for
invalid input; they return a failed ``Result`` carrying the catalogued error.
"""
import base64
import io
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from email_validator import validate_email, EmailNotValidError
from PIL import Image, UnidentifiedImageError

from estatehub.auth.errors import (
    Result, SessionErrors, UserErrors,
    MAX_LENGTH_TOKEN, MAX_LENGTH_DISPLAY_NAME, MAX_EMAIL_LENGTH,
    MAX_AVATAR_SIZE_BYTES, MIN_AVATAR_SIDE, ALLOWED_AVATAR_TYPES,
)
from estatehub.auth.models import utcnow


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class Session:
    user_id: UUID
    access_token: str
    refresh_token: str
    expiration_date: datetime
    id: Optional[UUID] = None

    @classmethod
    def create(
        cls,
        user_id: Optional[UUID],
        access_token: Optional[str],
        refresh_token: Optional[str],
        expiration_date: datetime,
    ) -> Result["Session"]:
        """
        Validate and build a session value.

        The id is left empty; the caller assigns it with ``with_id`` when the
        session id is already embedded in the issued tokens.
        """
        if user_id is None or user_id == UUID(int=0):
            return Result.failure(SessionErrors.empty_user_id())

        if access_token is None or not access_token.strip():
            return Result.failure(SessionErrors.invalid_access_token())
        if len(access_token) > MAX_LENGTH_TOKEN:
            return Result.failure(SessionErrors.access_token_too_long())

        if refresh_token is None or not refresh_token.strip():
            return Result.failure(SessionErrors.invalid_refresh_token())
        if len(refresh_token) > MAX_LENGTH_TOKEN:
            return Result.failure(SessionErrors.refresh_token_too_long())

        expiration_date = as_naive_utc(expiration_date)
        if expiration_date < utcnow():
            return Result.failure(SessionErrors.invalid_expiration_time())

        return Result.success(cls(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expiration_date=expiration_date,
        ))

    def with_id(self, session_id: UUID) -> "Session":
        return replace(self, id=session_id)


def is_valid_email(email: str) -> bool:
    trimmed = email.strip()
    if not trimmed or trimmed != email or trimmed.endswith("."):
        return False
    try:
        validate_email(trimmed, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def generate_user_name(email: str, user_id: UUID) -> str:
    return f"{email}_{user_id.hex[:8]}"


@dataclass(frozen=True)
class User:
    email: str
    user_name: str
    display_name: str
    password: str
    id: Optional[UUID] = None
    avatar_data: Optional[bytes] = None
    avatar_content_type: Optional[str] = None

    @classmethod
    def create(
        cls,
        email: str,
        display_name: Optional[str],
        user_name: Optional[str],
        password: Optional[str],
    ) -> Result["User"]:
        if not email or len(email) > MAX_EMAIL_LENGTH or not is_valid_email(email):
            return Result.failure(UserErrors.invalid_email())

        user_id = None
        if user_name is None or not user_name.strip():
            user_id = uuid.uuid4()
            user_name = generate_user_name(email, user_id)

        if display_name is None or not display_name.strip():
            display_name = email
        elif len(display_name) > MAX_LENGTH_DISPLAY_NAME:
            return Result.failure(UserErrors.invalid_display_name_length(display_name))

        if password is None or not password.strip():
            return Result.failure(UserErrors.invalid_password())

        return Result.success(cls(
            id=user_id,
            email=email,
            user_name=user_name,
            display_name=display_name,
            password=password,
        ))

    @classmethod
    def update(
        cls,
        user_id: UUID,
        display_name: Optional[str],
        avatar_data: Optional[bytes] = None,
        avatar_content_type: Optional[str] = None,
    ) -> Result["User"]:
        if display_name is None or not display_name.strip():
            return Result.failure(UserErrors.invalid_display_name())
        if len(display_name) > MAX_LENGTH_DISPLAY_NAME:
            return Result.failure(UserErrors.invalid_display_name_length(display_name))

        if avatar_data is not None:
            avatar_result = validate_avatar(avatar_data, avatar_content_type)
            if avatar_result.is_failure:
                return Result.failure(*avatar_result.errors)

        return Result.success(cls(
            id=user_id,
            email="",
            user_name="",
            display_name=display_name,
            password="",
            avatar_data=avatar_data,
            avatar_content_type=avatar_content_type,
        ))


def validate_avatar(avatar_data: bytes, content_type: Optional[str]) -> Result[None]:
    if len(avatar_data) > MAX_AVATAR_SIZE_BYTES:
        return Result.failure(UserErrors.avatar_too_large())

    if not content_type or content_type.lower() not in ALLOWED_AVATAR_TYPES:
        return Result.failure(UserErrors.invalid_avatar_type())

    try:
        with Image.open(io.BytesIO(avatar_data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, ValueError):
        return Result.failure(UserErrors.invalid_image_format())
    except OSError:
        return Result.failure(UserErrors.image_processing_error())

    if width < MIN_AVATAR_SIDE or height < MIN_AVATAR_SIDE:
        return Result.failure(UserErrors.avatar_too_small())
    if width != height:
        return Result.failure(UserErrors.avatar_must_be_square(width, height))

    return Result.success()


def avatar_data_uri(avatar_data: Optional[bytes], content_type: Optional[str]) -> str:
    """Render stored avatar bytes as a data URI, or an empty string."""
    if not avatar_data:
        return ""
    mime_type = content_type or "image/jpeg"
    encoded = base64.b64encode(avatar_data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
