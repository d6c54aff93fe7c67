"""Services module for business logic."""
from __future__ import annotations

from .api_key_service import ApiKeyAuthError, ApiKeyService
from .flag_query import FlagQueryService
from .flag_service import EnvironmentNotFoundError, FlagNotFoundError, FlagService
from .flag_values import cast_value, evaluate, is_active
from .network_guard import is_private_ip
from .payload_renderer import FlagSnapshot, PayloadRenderer
from .repository import DataAccess, DuplicateEntityError, Repository
from .webhook_dispatcher import DeliveryResult, WebhookDispatcher
from .webhook_validator import WebhookValidationError, validate_webhook

__all__ = [
    "ApiKeyAuthError",
    "ApiKeyService",
    "DataAccess",
    "DeliveryResult",
    "DuplicateEntityError",
    "EnvironmentNotFoundError",
    "FlagNotFoundError",
    "FlagQueryService",
    "FlagService",
    "FlagSnapshot",
    "PayloadRenderer",
    "Repository",
    "WebhookDispatcher",
    "WebhookValidationError",
    "cast_value",
    "evaluate",
    "is_active",
    "is_private_ip",
    "validate_webhook",
]
