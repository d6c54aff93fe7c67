"""Environment management API endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_flag_service
from app.schemas.environment import EnvironmentCreate, EnvironmentResponse, EnvironmentUpdate
from app.services.flag_service import EnvironmentNotFoundError, FlagService
from app.services.repository import DuplicateEntityError

router = APIRouter(prefix="/environments", tags=["environments"])


def _conflict(name: str | None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Environment '{name}' already exists",
    )


@router.get(
    "",
    response_model=list[EnvironmentResponse],
    status_code=status.HTTP_200_OK,
    summary="List environments",
    description="Environments ordered by sort_order, then name.",
)
async def list_environments(service: FlagService = Depends(get_flag_service)) -> list[EnvironmentResponse]:
    return [EnvironmentResponse.model_validate(e) for e in service.list_environments()]


@router.post(
    "",
    response_model=EnvironmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an environment",
)
async def create_environment(
    environment: EnvironmentCreate,
    service: FlagService = Depends(get_flag_service),
) -> EnvironmentResponse:
    try:
        return EnvironmentResponse.model_validate(service.create_environment(environment))
    except DuplicateEntityError as e:
        raise _conflict(environment.name) from e


@router.get(
    "/{environment_id}",
    response_model=EnvironmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get environment by ID",
)
async def get_environment(
    environment_id: int,
    service: FlagService = Depends(get_flag_service),
) -> EnvironmentResponse:
    try:
        return EnvironmentResponse.model_validate(service.get_environment(environment_id))
    except EnvironmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put(
    "/{environment_id}",
    response_model=EnvironmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update an environment",
)
async def update_environment(
    environment_id: int,
    environment: EnvironmentUpdate,
    service: FlagService = Depends(get_flag_service),
) -> EnvironmentResponse:
    try:
        return EnvironmentResponse.model_validate(service.update_environment(environment_id, environment))
    except EnvironmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DuplicateEntityError as e:
        raise _conflict(environment.name) from e


@router.delete(
    "/{environment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an environment",
    description="Deletes the environment together with every flag value stored for it.",
)
async def delete_environment(
    environment_id: int,
    service: FlagService = Depends(get_flag_service),
) -> None:
    try:
        service.delete_environment(environment_id)
    except EnvironmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
