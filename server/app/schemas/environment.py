"""Pydantic schemas for environment resources."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

EnvironmentName = Annotated[str, Field(min_length=1, max_length=255)]


class EnvironmentCreate(BaseModel):
    """Payload used when creating an environment."""

    name: EnvironmentName = Field(description="Unique environment name, e.g. 'production'")
    sort_order: int = Field(default=0, description="Display order, ascending")

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        if isinstance(value, str):
            value = value.strip()
        return value


class EnvironmentUpdate(BaseModel):
    """Payload used when updating an environment (all fields optional)."""

    name: EnvironmentName | None = Field(default=None)
    sort_order: int | None = Field(default=None)


class EnvironmentResponse(BaseModel):
    """Response model returned by environment endpoints."""

    id: int
    name: str
    sort_order: int
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
