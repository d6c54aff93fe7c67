"""API key models used to authenticate flag-state consumers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PhlagApiKey(Base):
    """Bearer token granting read access to evaluated flags."""

    __tablename__ = "phlag_api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    api_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PhlagApiKeyEnvironment(Base):
    """Restricts an API key to one environment; keys without rows are unrestricted."""

    __tablename__ = "phlag_api_key_environments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_key_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("phlag_api_keys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    environment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("phlag_environments.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("api_key_id", "environment_id", name="uq_phlag_api_key_environments_key_env"),
    )
