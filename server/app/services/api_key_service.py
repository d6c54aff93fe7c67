"""API key management and bearer-token authentication for flag consumers."""
from __future__ import annotations

import logging
import secrets
from typing import Any

from app.models import PhlagApiKey, PhlagApiKeyEnvironment
from app.services.repository import DataAccess

logger = logging.getLogger(__name__)

API_KEY_LENGTH = 64


class ApiKeyAuthError(Exception):
    """Raised when a request cannot be authenticated; the message is user-facing."""


def extract_bearer_token(auth_header: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header.

    The prefix is case-insensitive and the token is trimmed; anything else
    yields None.
    """
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def generate_api_key() -> str:
    return secrets.token_hex(API_KEY_LENGTH // 2)


def mask_api_key(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}{'*' * (len(api_key) - 8)}{api_key[-4:]}"


class ApiKeyService:
    """Creates API keys and checks them against environment assignments."""

    def __init__(self, data: DataAccess) -> None:
        self._data = data

    def authenticate(self, auth_header: str | None) -> PhlagApiKey:
        """Resolve the API key presented in an Authorization header.

        Raises:
            ApiKeyAuthError: With the reason the request was refused
        """
        if not auth_header:
            raise ApiKeyAuthError("Missing authorization header")

        token = extract_bearer_token(auth_header)
        if token is None:
            raise ApiKeyAuthError("Invalid authorization header format")

        api_key = next(iter(self._data.find("PhlagApiKey", {"api_key": token}).values()), None)
        if api_key is None:
            raise ApiKeyAuthError("Invalid API key")
        return api_key

    def authorize(self, api_key: PhlagApiKey, environment: Any) -> None:
        """Check the key may read ``environment``; keys without assignments read all.

        Raises:
            ApiKeyAuthError: If the key is restricted to other environments
        """
        allowed = self.environment_ids(api_key)
        if allowed and environment.id not in allowed:
            logger.info(f"API key {api_key.id} refused for environment '{environment.name}'")
            raise ApiKeyAuthError("API key not authorized for this environment")

    def environment_ids(self, api_key: PhlagApiKey) -> list[int]:
        assignments = self._data.find("PhlagApiKeyEnvironment", {"api_key_id": api_key.id})
        return sorted(assignment.environment_id for assignment in assignments.values())

    def list_keys(self) -> list[PhlagApiKey]:
        return list(self._data.find("PhlagApiKey", order_by=["description"]).values())

    def create_key(self, description: str, environment_ids: list[int]) -> PhlagApiKey:
        """Create a key restricted to ``environment_ids`` (empty = unrestricted).

        Raises:
            DuplicateEntityError: If the description is already used
        """
        api_key = self._data.save(
            "PhlagApiKey", PhlagApiKey(description=description, api_key=generate_api_key())
        )
        for environment_id in sorted(set(environment_ids)):
            self._data.save(
                "PhlagApiKeyEnvironment",
                PhlagApiKeyEnvironment(api_key_id=api_key.id, environment_id=environment_id),
            )
        logger.info(f"Created API key {api_key.id} ({description})")
        return api_key

    def delete_key(self, api_key_id: int) -> bool:
        api_key = self._data.get("PhlagApiKey", api_key_id)
        if api_key is None:
            return False
        for assignment in self._data.find("PhlagApiKeyEnvironment", {"api_key_id": api_key.id}).values():
            self._data.delete("PhlagApiKeyEnvironment", assignment)
        self._data.delete("PhlagApiKey", api_key)
        return True
