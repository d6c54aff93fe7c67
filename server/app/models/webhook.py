"""Webhook model definition."""
from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, false, func, true
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PhlagWebhook(Base):
    """Represents an HTTP endpoint notified when flags or their values change."""

    __tablename__ = "phlag_webhooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    headers_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_types_json: Mapped[str] = mapped_column(Text, nullable=False)
    include_environment_changes: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    @property
    def event_types(self) -> set[str]:
        """Subscribed event names; an unreadable column subscribes to nothing."""
        try:
            parsed = json.loads(self.event_types_json or "[]")
        except ValueError:
            return set()
        if not isinstance(parsed, list):
            return set()
        return {str(item) for item in parsed}

    @property
    def headers(self) -> dict[str, str]:
        """Custom HTTP headers sent with every delivery."""
        if not self.headers_json:
            return {}
        try:
            parsed = json.loads(self.headers_json)
        except ValueError:
            return {}
        if not isinstance(parsed, dict):
            return {}
        return {str(name): str(value) for name, value in parsed.items()}
