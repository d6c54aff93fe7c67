"""Public schema exports."""

from .api_key import ApiKeyCreate, ApiKeyCreatedResponse, ApiKeyResponse
from .environment import EnvironmentCreate, EnvironmentResponse, EnvironmentUpdate
from .flag import (
    EnvironmentValueResponse,
    EnvironmentValueSet,
    FlagCreate,
    FlagResponse,
    FlagState,
    FlagUpdate,
)
from .webhook import (
    WebhookCreate,
    WebhookResponse,
    WebhookTestRequest,
    WebhookTestResponse,
    WebhookUpdate,
)

__all__ = [
    "ApiKeyCreate",
    "ApiKeyCreatedResponse",
    "ApiKeyResponse",
    "EnvironmentCreate",
    "EnvironmentResponse",
    "EnvironmentUpdate",
    "EnvironmentValueResponse",
    "EnvironmentValueSet",
    "FlagCreate",
    "FlagResponse",
    "FlagState",
    "FlagUpdate",
    "WebhookCreate",
    "WebhookResponse",
    "WebhookTestRequest",
    "WebhookTestResponse",
    "WebhookUpdate",
]
