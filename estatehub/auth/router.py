"""
Authentication router.

This module provides FastAPI router for authentication endpoints:
- User registration, e-mail confirmation and login
- Access token refresh and logout (refresh token in an HttpOnly cookie)
- Password reset
- Soft-deleted account recovery
- The caller's current session
"""
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response

from estatehub.base_microservice import BaseMicroservice
from estatehub.auth.authentication import AuthenticationService
from estatehub.auth.dependencies import get_authentication_service, get_sessions_service
from estatehub.auth.errors import AuthorizationErrors, Result
from estatehub.auth.jwt import REFRESH_TOKEN_EXPIRE_DAYS, UserInformation
from estatehub.auth.middleware import get_current_user
from estatehub.auth.options import AppOptions, get_app_options
from estatehub.auth.sessions import SessionsService
from estatehub.auth.schemas import (
    AuthenticationResponse, ConfirmAccountActionRequest, ConfirmEmailRequest,
    ForgotPasswordRequest, LoginRequest, ManageAccountRequest, ResetPasswordRequest,
    SessionResponse, UserIdResponse, UserRegistrationRequest,
)

REFRESH_COOKIE_NAME = "ApplicationCookie"

# Create router
router = APIRouter(tags=["auth"])

# Create service instance
base_service = BaseMicroservice()


def set_refresh_cookie(response: Response, refresh_token: str, app_options: AppOptions):
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        refresh_token,
        max_age=REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=not app_options.is_development,
    )


def delete_refresh_cookie(response: Response, app_options: AppOptions):
    response.delete_cookie(
        REFRESH_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=not app_options.is_development,
    )


def _problem(result: Result):
    return base_service.problem_response(result.error, result.errors)


def _missing_cookie_problem():
    return base_service.problem_response(replace(AuthorizationErrors.not_found_refresh_token(), status=400))


# --- Registration and login ---

@router.post("/user-registration", response_model=Optional[AuthenticationResponse])
async def register_user(
    request: UserRegistrationRequest,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
    app_options: AppOptions = Depends(get_app_options),
):
    """
    Register a new user.

    Returns the authenticated user and sets the refresh cookie, or an empty
    body when the e-mail has to be confirmed first.
    """
    result = await service.register(request)
    if result.is_failure:
        base_service.log_error(result.error, context="User registration")
        return _problem(result)

    base_service.log_event("user.registered", {"email": request.email})
    if result.value is None:
        return Response(status_code=200)

    set_refresh_cookie(response, result.value.refresh_token, app_options)
    return result.value.to_response()


@router.patch("/confirm-email", response_model=AuthenticationResponse)
async def confirm_email(
    request: ConfirmEmailRequest,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
    app_options: AppOptions = Depends(get_app_options),
):
    result = await service.confirm_email(request)
    if result.is_failure:
        return _problem(result)

    base_service.log_event("user.email_confirmed", {"user_id": str(request.user_id)})
    set_refresh_cookie(response, result.value.refresh_token, app_options)
    return result.value.to_response()


@router.post("/login", response_model=AuthenticationResponse)
async def login(
    request: LoginRequest,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
    app_options: AppOptions = Depends(get_app_options),
):
    """
    Authenticate a user, open a session and set the refresh cookie.
    """
    result = await service.login(request)
    if result.is_failure:
        base_service.log_error(result.error, context="User login")
        return _problem(result)

    base_service.log_event("user.login", {"user_id": str(result.value.id)})
    set_refresh_cookie(response, result.value.refresh_token, app_options)
    return result.value.to_response()


# --- Password reset ---

@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = await service.forgot_password(request)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("user.password_reset_requested", {"email": request.email})
    return Response(status_code=200)


@router.put("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = await service.reset_password(request)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("user.password_reset", {"user_id": str(request.user_id)})
    return Response(status_code=200)


# --- Account recovery ---

@router.put("/manage-account-state")
async def manage_account_state(
    request: ManageAccountRequest,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = await service.manage_account_state(request)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("user.account_action_requested", {
        "email": request.email,
        "action": request.action_type.value,
    })
    return Response(status_code=200)


@router.patch("/confirm-account-action")
async def confirm_account_action(
    request: ConfirmAccountActionRequest,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = await service.confirm_account_action(request)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("user.account_recovered", {"user_id": str(request.user_id)})
    return Response(status_code=200)


# --- Sessions ---

@router.post("/refresh-access-token", response_model=AuthenticationResponse)
async def refresh_access_token(
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    service: AuthenticationService = Depends(get_authentication_service),
    app_options: AppOptions = Depends(get_app_options),
):
    """
    Issue a new access token for the session behind the refresh cookie.

    Any failure clears the cookie, except a lost race with a concurrent
    refresh of the same session.
    """
    if not refresh_token or not refresh_token.strip():
        return _missing_cookie_problem()

    result = await service.refresh_access_token(refresh_token)
    if result.is_failure:
        problem = _problem(result)
        if result.error.status != 409:
            delete_refresh_cookie(problem, app_options)
        return problem

    base_service.log_event("session.refreshed", {"user_id": str(result.value.id)})
    return result.value


@router.post("/logout")
async def logout(
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    service: AuthenticationService = Depends(get_authentication_service),
    app_options: AppOptions = Depends(get_app_options),
):
    """
    Revoke the session behind the refresh cookie. The cookie is always
    cleared, even when the token is missing or unknown.
    """
    if not refresh_token or not refresh_token.strip():
        response = _missing_cookie_problem()
    else:
        result = await service.logout(refresh_token)
        if result.is_failure:
            response = _problem(result)
        else:
            base_service.log_event("session.revoked", {})
            response = Response(status_code=200)

    delete_refresh_cookie(response, app_options)
    return response


@router.get("/user-id-from-token", response_model=UserIdResponse)
async def get_user_id_from_token(current_user: UserInformation = Depends(get_current_user)):
    return UserIdResponse(user_id=current_user.user_id)


@router.get("/session", response_model=SessionResponse)
async def get_session(
    current_user: UserInformation = Depends(get_current_user),
    sessions: SessionsService = Depends(get_sessions_service),
):
    result = await sessions.get_by_id(current_user.session_id)
    if result.is_failure:
        return _problem(result)
    session = result.value
    return SessionResponse(
        id=session.id,
        user_id=session.user_id,
        access_token=session.access_token,
        expiration_date=session.expiration_date,
    )
