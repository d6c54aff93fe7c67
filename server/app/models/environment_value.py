"""Per-environment flag value model definition."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PhlagEnvironmentValue(Base):
    """Stored value of one flag in one environment plus its activation window.

    A missing row means the flag is not configured for the environment, a row
    whose ``value`` is NULL means it was explicitly disabled. Window bounds are
    naive UTC timestamps.
    """

    __tablename__ = "phlag_environment_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    flag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("phlags.id", ondelete="CASCADE"), nullable=False, index=True
    )
    environment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("phlag_environments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_datetime: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_datetime: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("flag_id", "environment_id", name="uq_phlag_environment_values_flag_env"),
    )
