"""
Request and response models for the HTTP boundary.

JSON uses camelCase field names; snake_case is accepted on input as well.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from estatehub.auth.identity import AccountActionType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Requests ---

class LoginRequest(CamelModel):
    """Model for user login."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserRegistrationRequest(CamelModel):
    """Model for user registration."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: str
    display_name: Optional[str] = None
    user_name: Optional[str] = None
    callback_url: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ConfirmEmailRequest(CamelModel):
    user_id: UUID
    token: str


class ForgotPasswordRequest(CamelModel):
    """Model for password reset request."""
    email: EmailStr
    return_url: str = ""


class ResetPasswordRequest(CamelModel):
    """Model for password reset confirmation."""
    user_id: UUID
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ManageAccountRequest(CamelModel):
    email: EmailStr
    action_type: AccountActionType
    return_url: str = ""


class ConfirmAccountActionRequest(CamelModel):
    user_id: UUID
    token: str
    action_type: AccountActionType


class GetUsersByIdsRequest(CamelModel):
    ids: List[UUID] = []
    include_deleted: bool = False


class GetUserByIdRequest(CamelModel):
    id: str
    include_deleted: bool = False


class GetUsersByRawIdsRequest(CamelModel):
    ids: List[str] = []
    include_deleted: bool = False


class AssignRoleRequest(CamelModel):
    role: str


class SuspendUserRequest(CamelModel):
    reason: str = ""


class UserUpdateRequest(CamelModel):
    """Profile fields of a multipart update; the avatar travels separately."""
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    company_name: Optional[str] = None
    website: Optional[str] = None
    avatar_data: Optional[bytes] = None
    avatar_content_type: Optional[str] = None


# --- Responses ---

class AuthenticationResponse(CamelModel):
    """Body returned by login, registration, e-mail confirmation and refresh."""
    id: UUID
    email: str
    display_name: str
    role: str
    access_token: str
    avatar: str = ""


class UserIdResponse(CamelModel):
    user_id: UUID


class SessionResponse(CamelModel):
    """The caller's session; the refresh token stays in the cookie."""
    id: UUID
    user_id: UUID
    access_token: str
    expiration_date: datetime


class GetUserResponse(CamelModel):
    id: UUID
    email: str
    user_name: str
    display_name: str
    phone_number: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    company_name: Optional[str] = None
    website: Optional[str] = None
    last_active: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    avatar: str = ""


class GetUserWithRolesResponse(GetUserResponse):
    roles: List[str] = []


class GetUsersByIdsResponse(CamelModel):
    users: List[GetUserResponse] = []


class PagedUsersResponse(CamelModel):
    users: List[GetUserResponse]
    total: int
    page: int
    page_size: int


class UserStatsResponse(CamelModel):
    total_users: int
    active_users: int
    suspended_users: int
    new_users_this_month: int
