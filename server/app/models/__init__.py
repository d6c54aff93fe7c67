"""ORM models exposed for external modules."""
from .api_key import PhlagApiKey, PhlagApiKeyEnvironment
from .base import Base
from .environment import PhlagEnvironment
from .environment_value import PhlagEnvironmentValue
from .flag import FlagType, Phlag
from .webhook import PhlagWebhook

__all__ = [
    "Base",
    "FlagType",
    "Phlag",
    "PhlagApiKey",
    "PhlagApiKeyEnvironment",
    "PhlagEnvironment",
    "PhlagEnvironmentValue",
    "PhlagWebhook",
]
