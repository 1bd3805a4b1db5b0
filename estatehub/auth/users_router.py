"""
User and administration router.

Profile endpoints require a bearer token; administration endpoints also
require the Admin role.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from estatehub.base_microservice import BaseMicroservice
from estatehub.auth.errors import MAX_AVATAR_SIZE_BYTES, AuthorizationErrors
from estatehub.auth.dependencies import get_user_service
from estatehub.auth.jwt import UserInformation
from estatehub.auth.middleware import RBACMiddleware, get_current_user
from estatehub.auth.models import Roles
from estatehub.auth.schemas import (
    AssignRoleRequest, GetUsersByIdsRequest,
    GetUsersByIdsResponse, PagedUsersResponse, SuspendUserRequest, UserStatsResponse,
    UserUpdateRequest,
)
from estatehub.auth.users import DEFAULT_PAGE_SIZE, UserService, UserView

router = APIRouter(tags=["users"])
admin_router = APIRouter(prefix="/admin/users", tags=["admin"])

base_service = BaseMicroservice()

require_admin = RBACMiddleware.has_roles([Roles.ADMIN])


def _problem(result):
    return base_service.problem_response(result.error, result.errors)


@router.get("/user/{user_id}", response_model=None)
async def get_user(
    user_id: UUID,
    include_deleted: bool = Query(False, alias="includeDeleted"),
    current_user: UserInformation = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Own profile includes roles; anyone else's is the basic view."""
    view = UserView.WITH_ROLES if current_user.user_id == user_id else UserView.BASIC
    result = await service.get_by_id(user_id, include_deleted, view)
    if result.is_failure:
        return _problem(result)
    return result.value.model_dump(mode="json", by_alias=True)


@router.post("/users/by-ids", response_model=GetUsersByIdsResponse)
async def get_users_by_ids(
    request: GetUsersByIdsRequest,
    current_user: UserInformation = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    result = await service.get_by_ids(request.ids, request.include_deleted)
    if result.is_failure:
        return _problem(result)
    return GetUsersByIdsResponse(users=result.value)


@router.patch("/user/{user_id}", status_code=204)
async def update_user(
    user_id: UUID,
    display_name: Optional[str] = Form(None, alias="displayName"),
    phone_number: Optional[str] = Form(None, alias="phoneNumber"),
    country: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    postal_code: Optional[str] = Form(None, alias="postalCode"),
    company_name: Optional[str] = Form(None, alias="companyName"),
    website: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    current_user: UserInformation = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """
    Update the caller's own profile from a multipart form.
    """
    if current_user.user_id != user_id:
        return base_service.problem_response(AuthorizationErrors.can_update_only_self())

    avatar_data = None
    avatar_content_type = None
    if avatar is not None:
        # one byte past the limit is enough to reject an oversized upload
        avatar_data = await avatar.read(MAX_AVATAR_SIZE_BYTES + 1)
        avatar_content_type = avatar.content_type

    request = UserUpdateRequest(
        display_name=display_name,
        phone_number=phone_number,
        country=country,
        city=city,
        address=address,
        postal_code=postal_code,
        company_name=company_name,
        website=website,
        avatar_data=avatar_data,
        avatar_content_type=avatar_content_type,
    )
    result = await service.update_by_id(user_id, request)
    if result.is_failure:
        return _problem(result)

    base_service.log_event("user.updated", {"user_id": str(user_id)})
    return Response(status_code=204)


@router.delete("/user/{user_id}", status_code=204)
async def delete_user(
    user_id: UUID,
    current_user: UserInformation = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    if current_user.user_id != user_id:
        return base_service.problem_response(AuthorizationErrors.can_delete_only_self())

    result = await service.delete_by_id(user_id)
    if result.is_failure:
        return _problem(result)

    base_service.log_event("user.deleted", {"user_id": str(user_id)})
    return Response(status_code=204)


# --- Admin endpoints ---

@admin_router.get("", response_model=PagedUsersResponse)
async def get_users(
    page: int = 1,
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    include_deleted: bool = Query(False, alias="includeDeleted"),
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.get_users(page, page_size, include_deleted)
    if result.is_failure:
        return _problem(result)
    paged = result.value
    return PagedUsersResponse(users=paged.users, total=paged.total, page=paged.page, page_size=paged.page_size)


@admin_router.get("/stats", response_model=UserStatsResponse)
async def get_user_stats(
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.get_user_stats()
    if result.is_failure:
        return _problem(result)
    stats = result.value
    return UserStatsResponse(
        total_users=stats.total_users,
        active_users=stats.active_users,
        suspended_users=stats.suspended_users,
        new_users_this_month=stats.new_users_this_month,
    )


@admin_router.post("/{user_id}/roles", status_code=204)
async def assign_user_role(
    user_id: UUID,
    request: AssignRoleRequest,
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.assign_role(user_id, request.role)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("admin.role_assigned", {"user_id": str(user_id), "role": request.role})
    return Response(status_code=204)


@admin_router.delete("/{user_id}/roles/{role}", status_code=204)
async def remove_user_role(
    user_id: UUID,
    role: str,
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.remove_role(user_id, role, admin.user_id)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("admin.role_removed", {"user_id": str(user_id), "role": role})
    return Response(status_code=204)


@admin_router.post("/{user_id}/suspend", status_code=204)
async def suspend_user(
    user_id: UUID,
    request: SuspendUserRequest,
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.suspend_user(user_id, request.reason)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("admin.user_suspended", {"user_id": str(user_id), "reason": request.reason})
    return Response(status_code=204)


@admin_router.post("/{user_id}/activate", status_code=204)
async def activate_user(
    user_id: UUID,
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.activate_user(user_id)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("admin.user_activated", {"user_id": str(user_id)})
    return Response(status_code=204)


@admin_router.delete("/{user_id}", status_code=204)
async def admin_delete_user(
    user_id: UUID,
    admin: UserInformation = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    result = await service.admin_delete_user(user_id)
    if result.is_failure:
        return _problem(result)
    base_service.log_event("admin.user_deleted", {"user_id": str(user_id)})
    return Response(status_code=204)
