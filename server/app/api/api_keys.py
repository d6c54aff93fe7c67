"""API key management endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_api_key_service, get_repository
from app.models import PhlagApiKey
from app.schemas.api_key import ApiKeyCreate, ApiKeyCreatedResponse, ApiKeyResponse
from app.services.api_key_service import ApiKeyService, mask_api_key
from app.services.repository import DuplicateEntityError, Repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


def _to_response(service: ApiKeyService, api_key: PhlagApiKey) -> ApiKeyResponse:
    return ApiKeyResponse(
        id=api_key.id,
        description=api_key.description,
        masked_key=mask_api_key(api_key.api_key),
        environment_ids=service.environment_ids(api_key),
        created_at=api_key.created_at,
    )


@router.get(
    "",
    response_model=list[ApiKeyResponse],
    status_code=status.HTTP_200_OK,
    summary="List API keys",
    description="List API keys with their secrets masked.",
)
async def list_api_keys(service: ApiKeyService = Depends(get_api_key_service)) -> list[ApiKeyResponse]:
    return [_to_response(service, api_key) for api_key in service.list_keys()]


@router.post(
    "",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
    description=(
        "Generate a new 64 character key. The full key is only returned by this call; "
        "an empty environment_ids list grants access to every environment."
    ),
)
async def create_api_key(
    payload: ApiKeyCreate,
    service: ApiKeyService = Depends(get_api_key_service),
    repository: Repository = Depends(get_repository),
) -> ApiKeyCreatedResponse:
    """
    Create a new API key.

    Raises:
        HTTPException: 404 if an environment does not exist, 409 if the description is taken
    """
    for environment_id in payload.environment_ids:
        if repository.get("PhlagEnvironment", environment_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Environment with ID {environment_id} not found",
            )

    try:
        api_key = service.create_key(payload.description, payload.environment_ids)
    except DuplicateEntityError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"API key '{payload.description}' already exists",
        ) from e

    response = _to_response(service, api_key)
    return ApiKeyCreatedResponse(**response.model_dump(), api_key=api_key.api_key)


@router.delete(
    "/{api_key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an API key",
)
async def delete_api_key(
    api_key_id: int,
    service: ApiKeyService = Depends(get_api_key_service),
) -> None:
    if not service.delete_key(api_key_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"API key with ID {api_key_id} not found",
        )
    logger.info(f"Deleted API key {api_key_id}")
