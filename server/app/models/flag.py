"""Flag model definition."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Union

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class FlagType(str, Enum):
    """Enumerates the value types a flag can carry."""

    SWITCH = "SWITCH"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    STRING = "STRING"


# Evaluated flag value as served to applications
FlagValue = Union[bool, int, float, str, None]


class Phlag(Base):
    """A named, typed configuration unit whose value varies per environment."""

    __tablename__ = "phlags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    type: Mapped[FlagType] = mapped_column(
        SAEnum(FlagType, name="phlag_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())
