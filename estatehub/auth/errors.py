"""
Error catalogue and result type for the authorization service.

Every service operation returns a ``Result``. Failures carry one or more
``Error`` values taken from the catalogues below; the HTTP layer turns them
into problem-details responses.
"""
from dataclasses import dataclass, field, replace
from typing import Generic, Optional, Tuple, TypeVar, List
from uuid import UUID

T = TypeVar("T")

MAX_LENGTH_TOKEN = 2048
MAX_LENGTH_DISPLAY_NAME = 50
MAX_EMAIL_LENGTH = 320
MAX_AVATAR_SIZE_BYTES = 2 * 1024 * 1024
MIN_AVATAR_SIDE = 32
ALLOWED_AVATAR_TYPES = ("image/jpeg", "image/jpg", "image/png")


@dataclass(frozen=True)
class Error:
    """A catalogued failure."""
    status: int
    code: str
    error_code: int
    description: str
    user_message: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.code} ({self.error_code}): {self.description}"

    def with_user_message(self, message: str) -> "Error":
        return replace(self, user_message=message)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or a non-empty tuple of errors."""
    value: Optional[T] = None
    errors: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def is_success(self) -> bool:
        return not self.errors

    @property
    def is_failure(self) -> bool:
        return bool(self.errors)

    @property
    def error(self) -> Optional[Error]:
        return self.errors[0] if self.errors else None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, *errors: Error) -> "Result[T]":
        if not errors:
            raise ValueError("A failed result needs at least one error")
        return cls(errors=tuple(errors))


class ServiceError(Exception):
    """Raised from request dependencies to abort with a catalogued error."""

    def __init__(self, *errors: Error):
        super().__init__(str(errors[0]))
        self.errors = tuple(errors)

    @property
    def error(self) -> Error:
        return self.errors[0]


class AuthorizationErrors:
    @staticmethod
    def not_found_refresh_token() -> Error:
        return Error(401, "Authorization.NotFoundRefreshToken", 1001, "Refresh token not found")

    @staticmethod
    def incorrect_password_or_username() -> Error:
        return Error(401, "Authorization.IncorrectPasswordOrUsername", 1002, "Password or username is incorrect")

    @staticmethod
    def email_not_confirmed() -> Error:
        return Error(403, "Authorization.EmailNotConfirmed", 1003, "Email is not confirmed")

    @staticmethod
    def invalid_role() -> Error:
        return Error(400, "Authorization.InvalidRole", 1004, "Role does not exist")

    @staticmethod
    def callback_is_null() -> Error:
        return Error(400, "Authorization.CallbackIsNull", 1005, "Callback URL is required")

    @staticmethod
    def reset_password_error() -> Error:
        return Error(400, "Authorization.ResetPasswordError", 1006, "Password isn't reset.")

    @staticmethod
    def user_ids_not_equals(left: UUID, right: UUID) -> Error:
        return Error(403, "Authorization.UserIdsNotEquals", 1007, f"User IDs are not equal {left} and {right}")

    @staticmethod
    def refresh_token_expired() -> Error:
        return Error(401, "Authorization.RefreshTokenExpired", 1008, "Refresh token is expired")

    @staticmethod
    def logout_error() -> Error:
        return Error(400, "Authorization.LogoutError", 1009, "Logout error")

    @staticmethod
    def session_ids_not_equals(left: UUID, right: UUID) -> Error:
        return Error(403, "Authorization.SessionIdsNotEquals", 1010, f"Session IDs are not equal {left} and {right}")

    @staticmethod
    def invalid_token(detail: Optional[str] = None) -> Error:
        return Error(401, "Authorization.InvalidToken", 1011, detail or "Token is invalid")

    @staticmethod
    def not_found_account_action() -> Error:
        return Error(404, "Authorization.NotFoundAccountAction", 1012, "Account action not found")

    @staticmethod
    def can_update_only_self() -> Error:
        return Error(403, "Authorization.CanUpdateOnlySelf", 1013, "User can update only their own profile")

    @staticmethod
    def invalid_access_token() -> Error:
        return Error(401, "Authorization.InvalidAccessToken", 1014, "Access token is invalid")

    @staticmethod
    def can_delete_only_self() -> Error:
        return Error(403, "Authorization.CanDeleteOnlySelf", 1015, "You can only delete your own account")

    @staticmethod
    def forbidden_role(roles: List[str]) -> Error:
        return Error(403, "Authorization.ForbiddenRole", 1016, f"Role required: {', '.join(roles)}")


class SessionErrors:
    @staticmethod
    def not_found(session_id) -> Error:
        return Error(404, "Sessions.NotFound", 2001, f"The session with the Id = '{session_id}' was not found")

    @staticmethod
    def not_found_by_refresh_token() -> Error:
        return Error(404, "Sessions.NotFoundByRefreshToken", 2002,
                     "The session with the specified refresh token was not found")

    @staticmethod
    def not_found_by_user_id(user_id: UUID) -> Error:
        return Error(404, "Sessions.NotFoundByUserId", 2003, f"The session with the UserId = '{user_id}' was not found")

    @staticmethod
    def empty_user_id() -> Error:
        return Error(400, "Sessions.EmptyUserId", 2004, "The userId must not be empty")

    @staticmethod
    def invalid_access_token() -> Error:
        return Error(400, "Sessions.InvalidAccessToken", 2005, "The access token must not be null or whitespace")

    @staticmethod
    def access_token_too_long(max_length: int = MAX_LENGTH_TOKEN) -> Error:
        return Error(400, "Sessions.AccessTokenTooLong", 2006,
                     f"The access token exceeds the maximum length of {max_length} characters")

    @staticmethod
    def invalid_refresh_token() -> Error:
        return Error(400, "Sessions.InvalidRefreshToken", 2007, "The refresh token must not be null or whitespace")

    @staticmethod
    def refresh_token_too_long(max_length: int = MAX_LENGTH_TOKEN) -> Error:
        return Error(400, "Sessions.RefreshTokenTooLong", 2008,
                     f"The refresh token exceeds the maximum length of {max_length} characters")

    @staticmethod
    def invalid_expiration_time() -> Error:
        return Error(400, "Sessions.InvalidExpirationTime", 2009, "The refresh token expiration time must be in the future")

    @staticmethod
    def deletion_failed(session_id) -> Error:
        return Error(500, "Sessions.DeletionFailed", 2010, f"The session with the Id = '{session_id}' was not deleted")

    @staticmethod
    def deletion_failed_by_user_id(user_id: UUID) -> Error:
        return Error(500, "Sessions.DeletionFailedByUserId", 2011,
                     f"The session with the UserId = '{user_id}' was not deleted")

    @staticmethod
    def concurrent_update() -> Error:
        return Error(409, "Sessions.ConcurrentUpdate", 2012,
                     "The session was modified by another request",
                     user_message="Please retry the request")


class UserErrors:
    @staticmethod
    def not_found_by_id(user_id) -> Error:
        return Error(404, "Users.NotFoundById", 3002, f"The user with the Id = '{user_id}' was not found")

    @staticmethod
    def not_found_by_ids(user_ids) -> Error:
        joined = "', '".join(str(user_id) for user_id in user_ids)
        return Error(404, "Users.NotFoundByIds", 3003, f"The users with the Ids = '{joined}' were not found")

    @staticmethod
    def not_found_by_email(email: str) -> Error:
        return Error(404, "Users.NotFoundByEmail", 3004, f"The user with the Email = '{email}' was not found")

    @staticmethod
    def email_not_unique() -> Error:
        return Error(400, "Users.EmailNotUnique", 3005, "The provided email is not unique")

    @staticmethod
    def user_not_created() -> Error:
        return Error(500, "Users.UserNotCreated", 3006, "The user was not created")

    @staticmethod
    def user_not_added_to_role() -> Error:
        return Error(500, "Users.UserNotAddedToRole", 3007, "The user was not added to the role")

    @staticmethod
    def empty_user_name() -> Error:
        return Error(400, "Users.EmptyUserName", 3008, "Username cannot be empty")

    @staticmethod
    def invalid_email() -> Error:
        return Error(400, "Users.InvalidEmail", 3009, "Email is incorrect")

    @staticmethod
    def invalid_display_name() -> Error:
        return Error(400, "Users.InvalidDisplayName", 3010, "DisplayName cannot be empty")

    @staticmethod
    def invalid_display_name_length(display_name: str) -> Error:
        return Error(400, "Users.InvalidDisplayNameLength", 3011,
                     f"DisplayName length should be less than {MAX_LENGTH_DISPLAY_NAME} characters "
                     f"but was {len(display_name)}")

    @staticmethod
    def invalid_password() -> Error:
        return Error(400, "Users.InvalidPassword", 3012, "Password does not meet the requirements")

    @staticmethod
    def update_failed(user_id) -> Error:
        return Error(500, "Users.UpdateFailed", 3013, f"The user with the Id = '{user_id}' was not updated")

    @staticmethod
    def deletion_failed(user_id) -> Error:
        return Error(500, "Users.DeletionFailed", 3014, f"The user with the Id = '{user_id}' was not deleted")

    @staticmethod
    def user_is_deleted(email: str) -> Error:
        return Error(410, "Users.UserIsDeleted", 3015, f"The user with the Email = '{email}' was deleted")

    @staticmethod
    def user_not_hard_deleted() -> Error:
        return Error(500, "Users.UserNotHardDeleted", 3016, "The user was not hard deleted")

    @staticmethod
    def user_not_recovered() -> Error:
        return Error(500, "Users.UserNotRecovered", 3017, "The user account could not be recovered")

    @staticmethod
    def avatar_too_large() -> Error:
        return Error(400, "Users.AvatarTooLarge", 3018,
                     f"The avatar size exceeds the maximum allowed size of "
                     f"{MAX_AVATAR_SIZE_BYTES // 1024 // 1024} MB")

    @staticmethod
    def invalid_avatar_type() -> Error:
        return Error(400, "Users.InvalidAvatarType", 3019,
                     f"The avatar type is not allowed. Allowed types are: {', '.join(ALLOWED_AVATAR_TYPES)}")

    @staticmethod
    def avatar_must_be_square(width: int, height: int) -> Error:
        return Error(400, "Users.AvatarMustBeSquare", 3020,
                     f"The avatar image must be square. Provided dimensions: {width}x{height} pixels")

    @staticmethod
    def invalid_image_format() -> Error:
        return Error(400, "Users.InvalidImageFormat", 3021,
                     "The provided image format is invalid or unsupported. Please upload a valid image file.")

    @staticmethod
    def image_processing_error() -> Error:
        return Error(500, "Users.ImageProcessingError", 3022,
                     "An error occurred while processing the image. Please try again or contact support.")

    @staticmethod
    def avatar_too_small(min_side: int = MIN_AVATAR_SIDE) -> Error:
        return Error(400, "Users.AvatarTooSmall", 3023,
                     f"The avatar dimensions must be at least {min_side} pixels in length or width. "
                     "Provided dimensions are smaller than the minimum required size.")

    @staticmethod
    def cannot_remove_own_admin_role() -> Error:
        return Error(400, "Users.CannotRemoveOwnAdminRole", 3024, "You cannot remove your own Admin role")

    @staticmethod
    def user_suspended(email: str) -> Error:
        return Error(403, "Users.UserSuspended", 3025, f"The user with the Email = '{email}' is suspended",
                     user_message="Your account has been suspended")

    @staticmethod
    def invalid_user_id_format(value: str) -> Error:
        return Error(400, "Users.InvalidUserIdFormat", 3026, f"Invalid user ID format: {value}")


class GeneralErrors:
    @staticmethod
    def validation_failed() -> Error:
        return Error(400, "General.ValidationFailed", 9001, "One or more validation errors occurred.")

    @staticmethod
    def unexpected() -> Error:
        return Error(500, "General.Unexpected", 9002, "An unexpected error occurred.")


class EmailErrors:
    @staticmethod
    def send_failed(recipient: str) -> Error:
        return Error(500, "Email.SendFailed", 4001, f"The email to '{recipient}' could not be sent")
