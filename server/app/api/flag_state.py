"""Flag-state endpoints consumed by applications (bearer-token authenticated)."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import get_authorized_environment, get_flag_query_service
from app.models import PhlagEnvironment
from app.schemas.flag import FlagState
from app.services.flag_query import FlagQueryService

router = APIRouter(tags=["flag-state"])


@router.get(
    "/flag/{environment}/{name}",
    status_code=status.HTTP_200_OK,
    summary="Get one evaluated flag value",
    description=(
        "Returns the raw JSON scalar for the flag in the environment: true/false, "
        "a number, a string, or null when the flag is unknown or not configured."
    ),
)
async def get_flag_state(
    name: str,
    environment: PhlagEnvironment = Depends(get_authorized_environment),
    query: FlagQueryService = Depends(get_flag_query_service),
) -> JSONResponse:
    return JSONResponse(content=query.get_flag_value(name, environment))


@router.get(
    "/all-flags/{environment}",
    status_code=status.HTTP_200_OK,
    summary="Get every evaluated flag as a name to value map",
)
async def get_all_flags(
    environment: PhlagEnvironment = Depends(get_authorized_environment),
    query: FlagQueryService = Depends(get_flag_query_service),
) -> JSONResponse:
    return JSONResponse(content=query.get_all_flags(environment))


@router.get(
    "/get-flags/{environment}",
    response_model=list[FlagState],
    status_code=status.HTTP_200_OK,
    summary="Get every evaluated flag with type and activation window",
)
async def get_flags(
    environment: PhlagEnvironment = Depends(get_authorized_environment),
    query: FlagQueryService = Depends(get_flag_query_service),
) -> JSONResponse:
    return JSONResponse(content=query.get_flags(environment))
