"""Pydantic schemas for flag resources and their environment values."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.flag import FlagType, FlagValue

FlagName = Annotated[str, Field(min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_-]+$")]


class FlagCreate(BaseModel):
    """Payload used when creating a flag."""

    name: FlagName = Field(description="Unique name; letters, digits, '_' and '-' only")
    type: FlagType = Field(description="Value type; cannot be changed later")
    description: str | None = Field(default=None, max_length=1024, description="Free text description")

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        if isinstance(value, str):
            value = value.strip()
        return value


class FlagUpdate(BaseModel):
    """Payload used when updating a flag; only the description is mutable."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = Field(default=None, max_length=1024, description="Free text description")


class FlagResponse(BaseModel):
    """Response model returned by flag endpoints."""

    id: int = Field(description="Database identifier")
    name: str
    type: FlagType
    description: str | None
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class EnvironmentValueSet(BaseModel):
    """Value of a flag in one environment plus its optional activation window.

    ``value`` set to null disables the flag explicitly in the environment.
    Timestamps carrying an offset are stored as UTC.
    """

    value: str | None = Field(default=None, max_length=255)
    start_datetime: datetime | None = Field(default=None, description="Window start (inclusive)")
    end_datetime: datetime | None = Field(default=None, description="Window end (inclusive)")

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def to_naive_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def check_window(self) -> "EnvironmentValueSet":
        if self.start_datetime and self.end_datetime and self.start_datetime > self.end_datetime:
            raise ValueError("start_datetime must not be after end_datetime")
        return self


class EnvironmentValueResponse(BaseModel):
    """Stored environment value."""

    id: int
    flag_id: int
    environment_id: int
    value: str | None
    start_datetime: datetime | None
    end_datetime: datetime | None

    model_config = ConfigDict(from_attributes=True)


class FlagState(BaseModel):
    """Detailed evaluated flag returned by the bulk flag-state endpoint."""

    name: str
    type: FlagType
    value: FlagValue
    start_datetime: str | None = Field(description="ISO-8601 window start, null when unset")
    end_datetime: str | None = Field(description="ISO-8601 window end, null when unset")
