"""Webhook configuration and management API endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_repository, get_webhook_dispatcher
from app.models import PhlagWebhook
from app.schemas.webhook import (
    WebhookCreate,
    WebhookResponse,
    WebhookTestRequest,
    WebhookTestResponse,
    WebhookUpdate,
)
from app.services.repository import Repository
from app.services.webhook_dispatcher import WebhookDispatcher
from app.services.webhook_validator import WebhookValidationError, validate_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _invalid(error: WebhookValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"code": error.code.value, "message": error.message},
    )


def _get_or_404(repository: Repository, webhook_id: int) -> PhlagWebhook:
    webhook = repository.get("PhlagWebhook", webhook_id)
    if webhook is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Webhook with ID {webhook_id} not found",
        )
    return webhook


@router.get(
    "",
    response_model=list[WebhookResponse],
    status_code=status.HTTP_200_OK,
    summary="List all webhooks",
    description="Retrieve a list of all configured webhooks.",
)
async def list_webhooks(
    repository: Repository = Depends(get_repository),
) -> list[WebhookResponse]:
    webhooks = repository.find("PhlagWebhook", order_by=["name"])
    return [WebhookResponse.model_validate(w) for w in webhooks.values()]


@router.post(
    "",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new webhook",
    description=(
        "Create a webhook. The URL must use HTTPS (plain HTTP is accepted for localhost), "
        "event_types_json must be a non-empty JSON array and headers_json, when given, a JSON object."
    ),
)
async def create_webhook(
    webhook: WebhookCreate,
    repository: Repository = Depends(get_repository),
) -> WebhookResponse:
    """
    Create a new webhook.

    Raises:
        HTTPException: 422 with the failing rule's code if validation fails
    """
    try:
        validate_webhook(webhook)
    except WebhookValidationError as e:
        raise _invalid(e) from e

    created = repository.save("PhlagWebhook", PhlagWebhook(**webhook.model_dump()))
    logger.info(f"Created webhook '{created.name}' ({created.url})")
    return WebhookResponse.model_validate(created)


@router.get(
    "/{webhook_id}",
    response_model=WebhookResponse,
    status_code=status.HTTP_200_OK,
    summary="Get webhook by ID",
)
async def get_webhook(
    webhook_id: int,
    repository: Repository = Depends(get_repository),
) -> WebhookResponse:
    return WebhookResponse.model_validate(_get_or_404(repository, webhook_id))


@router.put(
    "/{webhook_id}",
    response_model=WebhookResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a webhook",
    description="Update a webhook by ID. All fields are optional; the result is validated as a whole.",
)
async def update_webhook(
    webhook_id: int,
    webhook: WebhookUpdate,
    repository: Repository = Depends(get_repository),
) -> WebhookResponse:
    db_webhook = _get_or_404(repository, webhook_id)

    try:
        candidate = WebhookCreate.model_validate(
            {
                **WebhookCreate.model_validate(db_webhook, from_attributes=True).model_dump(),
                **webhook.model_dump(exclude_unset=True),
            }
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        ) from e
    try:
        validate_webhook(candidate)
    except WebhookValidationError as e:
        raise _invalid(e) from e

    for field, value in candidate.model_dump().items():
        setattr(db_webhook, field, value)
    updated = repository.save("PhlagWebhook", db_webhook)
    return WebhookResponse.model_validate(updated)


@router.delete(
    "/{webhook_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a webhook by ID",
)
async def delete_webhook(
    webhook_id: int,
    repository: Repository = Depends(get_repository),
) -> None:
    repository.delete("PhlagWebhook", _get_or_404(repository, webhook_id))


@router.post(
    "/{webhook_id}/test",
    response_model=WebhookTestResponse,
    status_code=status.HTTP_200_OK,
    summary="Test a webhook",
    description=(
        "Send an 'updated' event built from the selected flag's stored data to the webhook, "
        "synchronously. Answers 502 with the delivery details when delivery fails."
    ),
    responses={status.HTTP_502_BAD_GATEWAY: {"model": WebhookTestResponse}},
)
async def test_webhook(
    webhook_id: int,
    payload: WebhookTestRequest,
    repository: Repository = Depends(get_repository),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> WebhookTestResponse | JSONResponse:
    """
    Test a webhook with real flag data.

    Raises:
        HTTPException: 404 if webhook or flag not found, 400 if the webhook is inactive
    """
    webhook = _get_or_404(repository, webhook_id)

    flag = repository.get("Phlag", payload.flag_id)
    if flag is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Flag with ID {payload.flag_id} not found",
        )

    if not webhook.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook is inactive; activate it before testing",
        )

    result = await run_in_threadpool(dispatcher.dispatch_test, webhook, flag)
    response = WebhookTestResponse(
        **result.as_dict(),
        error_kind=result.error_kind.value if result.error_kind else None,
    )

    if not result.success:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=response.model_dump())
    return response
