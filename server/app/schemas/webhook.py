"""Pydantic schemas for webhook resources."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WebhookBase(BaseModel):
    """Shared attributes for webhook payloads.

    ``event_types_json`` and ``headers_json`` are JSON documents; they are
    checked by the webhook validator rather than here so every rule reports
    its own error code.
    """

    name: str = Field(min_length=1, max_length=255, description="Display name")
    url: str = Field(description="Endpoint receiving POST requests (HTTPS, except localhost)")
    is_active: bool = Field(default=True, description="Whether the webhook receives events")
    event_types_json: str = Field(description='JSON array of event names, e.g. ["created", "updated"]')
    headers_json: str | None = Field(default=None, description="JSON object of extra HTTP headers")
    payload_template: str | None = Field(default=None, description="Jinja2 payload template; empty uses the default")
    include_environment_changes: bool = Field(
        default=False, description="Receive environment_value_updated events"
    )


class WebhookCreate(WebhookBase):
    """Payload used when creating a webhook."""

    pass


class WebhookUpdate(BaseModel):
    """Payload used when updating a webhook (all fields optional)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    url: str | None = Field(default=None)
    is_active: bool | None = Field(default=None)
    event_types_json: str | None = Field(default=None)
    headers_json: str | None = Field(default=None)
    payload_template: str | None = Field(default=None)
    include_environment_changes: bool | None = Field(default=None)


class WebhookResponse(WebhookBase):
    """Response model returned by API endpoints."""

    id: int = Field(description="Database identifier")
    created_at: datetime = Field(description="Timestamp when the webhook was created")
    updated_at: datetime | None = Field(description="Timestamp when the webhook was last updated")

    model_config = ConfigDict(from_attributes=True)


class WebhookTestRequest(BaseModel):
    """Selects the flag whose stored data is sent in a test delivery."""

    flag_id: int = Field(description="Flag used to build the test payload")


class WebhookTestResponse(BaseModel):
    """Response model for webhook test endpoint."""

    success: bool = Field(description="Whether the webhook call succeeded")
    status_code: int = Field(description="HTTP status code from webhook endpoint, 0 when none")
    response_body: str = Field(description="Response body (truncated)")
    error: str | None = Field(default=None, description="Error message if call failed")
    error_kind: str | None = Field(default=None, description="Failure category if call failed")
