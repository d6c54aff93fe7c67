"""Shared FastAPI dependencies."""
from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.db import get_session
from app.models import PhlagEnvironment
from app.services.api_key_service import ApiKeyAuthError, ApiKeyService
from app.services.flag_query import FlagQueryService
from app.services.flag_service import FlagService
from app.services.repository import Repository
from app.services.webhook_dispatcher import WebhookDispatcher


def get_repository(session: Session = Depends(get_session)) -> Repository:
    """Dependency to get Repository instance."""
    return Repository(session)


def get_webhook_dispatcher(repository: Repository = Depends(get_repository)) -> WebhookDispatcher:
    """Dependency to get WebhookDispatcher instance."""
    return WebhookDispatcher(repository)


def get_flag_service(
    repository: Repository = Depends(get_repository),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> FlagService:
    """Dependency to get FlagService instance."""
    return FlagService(repository, dispatcher)


def get_flag_query_service(repository: Repository = Depends(get_repository)) -> FlagQueryService:
    """Dependency to get FlagQueryService instance."""
    return FlagQueryService(repository)


def get_api_key_service(repository: Repository = Depends(get_repository)) -> ApiKeyService:
    """Dependency to get ApiKeyService instance."""
    return ApiKeyService(repository)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "Unauthorized", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_authorized_environment(
    environment: str,
    authorization: str | None = Header(default=None),
    api_keys: ApiKeyService = Depends(get_api_key_service),
    query: FlagQueryService = Depends(get_flag_query_service),
) -> PhlagEnvironment:
    """Authenticate the bearer token and resolve the ``environment`` path parameter.

    Raises:
        HTTPException: 401 for missing/invalid keys, 404 for unknown environments
    """
    try:
        api_key = api_keys.authenticate(authorization)
    except ApiKeyAuthError as e:
        raise _unauthorized(str(e)) from e

    resolved = query.get_environment(environment)
    if resolved is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Environment not found", "message": f'Environment "{environment}" does not exist'},
        )

    try:
        api_keys.authorize(api_key, resolved)
    except ApiKeyAuthError as e:
        raise _unauthorized(str(e)) from e

    return resolved
