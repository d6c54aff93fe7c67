"""Flag and environment value management API endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_flag_service
from app.schemas.flag import (
    EnvironmentValueResponse,
    EnvironmentValueSet,
    FlagCreate,
    FlagResponse,
    FlagUpdate,
)
from app.services.flag_service import EnvironmentNotFoundError, FlagNotFoundError, FlagService
from app.services.repository import DuplicateEntityError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flags", tags=["flags"])


def _not_found(error: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))


@router.get(
    "",
    response_model=list[FlagResponse],
    status_code=status.HTTP_200_OK,
    summary="List all flags",
)
async def list_flags(service: FlagService = Depends(get_flag_service)) -> list[FlagResponse]:
    return [FlagResponse.model_validate(flag) for flag in service.list_flags()]


@router.post(
    "",
    response_model=FlagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new flag",
    description="Create a flag. Name and type cannot be changed afterwards. Dispatches the 'created' webhook event.",
)
async def create_flag(
    flag: FlagCreate,
    service: FlagService = Depends(get_flag_service),
) -> FlagResponse:
    """
    Create a new flag.

    Raises:
        HTTPException: 409 if the name is already taken
    """
    try:
        created = await run_in_threadpool(service.create_flag, flag)
    except DuplicateEntityError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Flag '{flag.name}' already exists",
        ) from e
    return FlagResponse.model_validate(created)


@router.get(
    "/{flag_id}",
    response_model=FlagResponse,
    status_code=status.HTTP_200_OK,
    summary="Get flag by ID",
)
async def get_flag(flag_id: int, service: FlagService = Depends(get_flag_service)) -> FlagResponse:
    try:
        return FlagResponse.model_validate(service.get_flag(flag_id))
    except FlagNotFoundError as e:
        raise _not_found(e) from e


@router.put(
    "/{flag_id}",
    response_model=FlagResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a flag's description",
    description="Only the description is mutable. Dispatches the 'updated' webhook event.",
)
async def update_flag(
    flag_id: int,
    flag: FlagUpdate,
    service: FlagService = Depends(get_flag_service),
) -> FlagResponse:
    try:
        updated = await run_in_threadpool(service.update_flag, flag_id, flag)
    except FlagNotFoundError as e:
        raise _not_found(e) from e
    return FlagResponse.model_validate(updated)


@router.delete(
    "/{flag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a flag",
    description="Deletes the flag and its environment values. Dispatches the 'deleted' webhook event.",
)
async def delete_flag(flag_id: int, service: FlagService = Depends(get_flag_service)) -> None:
    try:
        await run_in_threadpool(service.delete_flag, flag_id)
    except FlagNotFoundError as e:
        raise _not_found(e) from e


@router.get(
    "/{flag_id}/environments",
    response_model=list[EnvironmentValueResponse],
    status_code=status.HTTP_200_OK,
    summary="List a flag's environment values",
)
async def list_environment_values(
    flag_id: int,
    service: FlagService = Depends(get_flag_service),
) -> list[EnvironmentValueResponse]:
    try:
        values = service.list_environment_values(flag_id)
    except FlagNotFoundError as e:
        raise _not_found(e) from e
    return [EnvironmentValueResponse.model_validate(v) for v in values]


@router.put(
    "/{flag_id}/environments/{environment_id}",
    response_model=EnvironmentValueResponse,
    status_code=status.HTTP_200_OK,
    summary="Set a flag's value in an environment",
    description=(
        "Create or replace the value and activation window of the flag in one environment. "
        "A null value disables the flag there. Dispatches 'environment_value_updated'."
    ),
)
async def set_environment_value(
    flag_id: int,
    environment_id: int,
    payload: EnvironmentValueSet,
    service: FlagService = Depends(get_flag_service),
) -> EnvironmentValueResponse:
    try:
        env_value = await run_in_threadpool(service.set_environment_value, flag_id, environment_id, payload)
    except (FlagNotFoundError, EnvironmentNotFoundError) as e:
        raise _not_found(e) from e
    return EnvironmentValueResponse.model_validate(env_value)


@router.delete(
    "/{flag_id}/environments/{environment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a flag's value in an environment",
)
async def delete_environment_value(
    flag_id: int,
    environment_id: int,
    service: FlagService = Depends(get_flag_service),
) -> None:
    if not service.delete_environment_value(flag_id, environment_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Flag {flag_id} has no value in environment {environment_id}",
        )
