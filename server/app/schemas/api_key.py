"""Pydantic schemas for API key resources."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyCreate(BaseModel):
    """Payload used when creating an API key."""

    description: str = Field(min_length=1, max_length=255)
    environment_ids: list[int] = Field(
        default_factory=list, description="Environments the key may read; empty means all"
    )


class ApiKeyResponse(BaseModel):
    """API key as listed; the secret is masked."""

    id: int
    description: str
    masked_key: str
    environment_ids: list[int]
    created_at: datetime


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once on creation with the full key."""

    api_key: str
