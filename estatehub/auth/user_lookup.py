"""
Service-to-service user lookup.

Other EstateHub services resolve users through these RPC-style endpoints,
mounted under ``/user-service``, and call them with ``UserServiceClient``.
"""
import logging
from typing import List, Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends

from estatehub.base_microservice import BaseMicroservice
from estatehub.auth.dependencies import get_user_service
from estatehub.auth.errors import UserErrors
from estatehub.auth.jwt import UserInformation
from estatehub.auth.middleware import get_current_user
from estatehub.auth.schemas import (
    GetUserByIdRequest, GetUserResponse, GetUsersByIdsResponse, GetUsersByRawIdsRequest,
    UserIdResponse,
)
from estatehub.auth.users import UserService

logger = logging.getLogger("estatehub.user_lookup")

router = APIRouter(prefix="/user-service", tags=["user-service"])

base_service = BaseMicroservice()


def _parse_user_id(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


@router.post("/GetUserIdFromToken", response_model=UserIdResponse)
async def get_user_id_from_token(current_user: UserInformation = Depends(get_current_user)):
    logger.debug(f"GetUserIdFromToken called for user {current_user.user_id}")
    return UserIdResponse(user_id=current_user.user_id)


@router.post("/GetUserById", response_model=GetUserResponse)
async def get_user_by_id(
    request: GetUserByIdRequest,
    service: UserService = Depends(get_user_service),
):
    user_id = _parse_user_id(request.id)
    if user_id is None:
        logger.warning(f"Invalid user ID format: {request.id}")
        return base_service.problem_response(UserErrors.invalid_user_id_format(request.id))

    result = await service.get_by_id(user_id, request.include_deleted)
    if result.is_failure:
        logger.warning(f"User not found for ID: {user_id}")
        return base_service.problem_response(result.error)
    return result.value


@router.post("/GetUsersByIds", response_model=GetUsersByIdsResponse)
async def get_users_by_ids(
    request: GetUsersByRawIdsRequest,
    service: UserService = Depends(get_user_service),
):
    """Unknown ids are skipped; an empty request yields an empty list."""
    if not request.ids:
        return GetUsersByIdsResponse(users=[])

    user_ids = []
    for raw_id in request.ids:
        user_id = _parse_user_id(raw_id)
        if user_id is None:
            return base_service.problem_response(UserErrors.invalid_user_id_format(raw_id))
        user_ids.append(user_id)

    logger.debug(f"GetUsersByIds called for {len(user_ids)} users, includeDeleted: {request.include_deleted}")
    result = await service.get_by_ids(user_ids, request.include_deleted)
    if result.is_failure:
        return GetUsersByIdsResponse(users=[])
    return GetUsersByIdsResponse(users=result.value)


class UserServiceClient:
    """
    Client for the user lookup endpoints.

    Example:
        >>> client = UserServiceClient("http://authorization:8000")
        >>> user = await client.get_user_by_id(user_id)
    """

    def __init__(self, base_url: str, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=5.0)
        )

    async def close(self):
        await self._http_client.aclose()

    async def _post(self, method: str, payload: dict, headers: Optional[dict] = None) -> httpx.Response:
        return await self._http_client.post(f"{self.base_url}/user-service/{method}", json=payload, headers=headers)

    async def get_user_id_from_token(self, access_token: str) -> Optional[UUID]:
        """
        Resolve the user behind a bearer token.

        Returns:
            The user id, or None when the token is invalid or revoked
        """
        response = await self._post("GetUserIdFromToken", {}, {"Authorization": f"Bearer {access_token}"})
        if response.status_code == 401:
            return None
        response.raise_for_status()
        return UserIdResponse.model_validate(response.json()).user_id

    async def get_user_by_id(self, user_id: UUID, include_deleted: bool = False) -> Optional[GetUserResponse]:
        response = await self._post("GetUserById", {"id": str(user_id), "includeDeleted": include_deleted})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return GetUserResponse.model_validate(response.json())

    async def get_users_by_ids(self, user_ids: List[UUID], include_deleted: bool = False) -> List[GetUserResponse]:
        response = await self._post(
            "GetUsersByIds",
            {"ids": [str(user_id) for user_id in user_ids], "includeDeleted": include_deleted},
        )
        response.raise_for_status()
        return GetUsersByIdsResponse.model_validate(response.json()).users
