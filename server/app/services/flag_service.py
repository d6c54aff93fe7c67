"""Service layer for flag, environment and environment value mutations."""
from __future__ import annotations

import logging
from typing import Any

from app.models import Phlag, PhlagEnvironment, PhlagEnvironmentValue
from app.schemas.environment import EnvironmentCreate, EnvironmentUpdate
from app.schemas.flag import EnvironmentValueSet, FlagCreate, FlagUpdate
from app.services.repository import DataAccess
from app.services.webhook_dispatcher import ENVIRONMENT_VALUE_UPDATED, WebhookDispatcher

logger = logging.getLogger(__name__)


class FlagNotFoundError(LookupError):
    """Raised when a flag id does not exist."""


class EnvironmentNotFoundError(LookupError):
    """Raised when an environment id does not exist."""


class FlagService:
    """Applies admin changes and notifies webhooks about them.

    Webhook delivery happens after the change is committed and never
    raises, so a failing endpoint cannot undo or block a save.
    """

    def __init__(self, data: DataAccess, dispatcher: WebhookDispatcher) -> None:
        self._data = data
        self._dispatcher = dispatcher

    # Flags

    def list_flags(self) -> list[Phlag]:
        return list(self._data.find("Phlag", order_by=["name"]).values())

    def get_flag(self, flag_id: int) -> Phlag:
        flag = self._data.get("Phlag", flag_id)
        if flag is None:
            raise FlagNotFoundError(f"Flag with ID {flag_id} not found")
        return flag

    def create_flag(self, payload: FlagCreate) -> Phlag:
        """Create a flag and dispatch "created".

        Raises:
            DuplicateEntityError: If the name is already taken
        """
        flag = self._data.save(
            "Phlag",
            Phlag(name=payload.name, type=payload.type, description=payload.description),
        )
        logger.info(f"Created flag '{flag.name}' ({flag.type.value})")
        self._dispatcher.dispatch("created", flag)
        return flag

    def update_flag(self, flag_id: int, payload: FlagUpdate) -> Phlag:
        """Update the description (name and type are immutable) and dispatch "updated"."""
        flag = self.get_flag(flag_id)
        previous = self._dispatcher.snapshot(flag)

        if "description" in payload.model_fields_set:
            flag.description = payload.description
        flag = self._data.save("Phlag", flag)
        logger.info(f"Updated flag '{flag.name}'")
        self._dispatcher.dispatch("updated", flag, previous)
        return flag

    def delete_flag(self, flag_id: int) -> None:
        """Dispatch "deleted" while values still exist, then remove the flag and its values."""
        flag = self.get_flag(flag_id)
        self._dispatcher.dispatch("deleted", flag)

        for env_value in self._data.find("PhlagEnvironmentValue", {"flag_id": flag.id}).values():
            self._data.delete("PhlagEnvironmentValue", env_value)
        self._data.delete("Phlag", flag)
        logger.info(f"Deleted flag '{flag.name}'")

    # Environments

    def list_environments(self) -> list[PhlagEnvironment]:
        return list(self._data.find("PhlagEnvironment", order_by=["sort_order", "name"]).values())

    def get_environment(self, environment_id: int) -> PhlagEnvironment:
        environment = self._data.get("PhlagEnvironment", environment_id)
        if environment is None:
            raise EnvironmentNotFoundError(f"Environment with ID {environment_id} not found")
        return environment

    def create_environment(self, payload: EnvironmentCreate) -> PhlagEnvironment:
        environment = self._data.save(
            "PhlagEnvironment",
            PhlagEnvironment(name=payload.name, sort_order=payload.sort_order),
        )
        logger.info(f"Created environment '{environment.name}'")
        return environment

    def update_environment(self, environment_id: int, payload: EnvironmentUpdate) -> PhlagEnvironment:
        environment = self.get_environment(environment_id)
        if payload.name is not None:
            environment.name = payload.name
        if payload.sort_order is not None:
            environment.sort_order = payload.sort_order
        return self._data.save("PhlagEnvironment", environment)

    def delete_environment(self, environment_id: int) -> None:
        environment = self.get_environment(environment_id)
        criteria = {"environment_id": environment.id}
        for env_value in self._data.find("PhlagEnvironmentValue", criteria).values():
            self._data.delete("PhlagEnvironmentValue", env_value)
        for assignment in self._data.find("PhlagApiKeyEnvironment", criteria).values():
            self._data.delete("PhlagApiKeyEnvironment", assignment)
        self._data.delete("PhlagEnvironment", environment)
        logger.info(f"Deleted environment '{environment.name}'")

    # Environment values

    def list_environment_values(self, flag_id: int) -> list[PhlagEnvironmentValue]:
        flag = self.get_flag(flag_id)
        return list(self._data.find("PhlagEnvironmentValue", {"flag_id": flag.id}).values())

    def _find_environment_value(self, flag_id: int, environment_id: int) -> Any | None:
        rows = self._data.find(
            "PhlagEnvironmentValue", {"flag_id": flag_id, "environment_id": environment_id}
        )
        return next(iter(rows.values()), None)

    def set_environment_value(
        self, flag_id: int, environment_id: int, payload: EnvironmentValueSet
    ) -> PhlagEnvironmentValue:
        """Create or replace the value of a flag in one environment.

        Dispatches "environment_value_updated" to webhooks that opted into
        environment changes.
        """
        flag = self.get_flag(flag_id)
        environment = self.get_environment(environment_id)
        previous = self._dispatcher.snapshot(flag)

        env_value = self._find_environment_value(flag.id, environment.id)
        if env_value is None:
            env_value = PhlagEnvironmentValue(flag_id=flag.id, environment_id=environment.id)
        env_value.value = payload.value
        env_value.start_datetime = payload.start_datetime
        env_value.end_datetime = payload.end_datetime

        env_value = self._data.save("PhlagEnvironmentValue", env_value)
        logger.info(f"Set value of flag '{flag.name}' in environment '{environment.name}'")
        self._dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, env_value, previous)
        return env_value

    def delete_environment_value(self, flag_id: int, environment_id: int) -> bool:
        """Remove a flag's value in one environment, making it "not configured" there."""
        env_value = self._find_environment_value(flag_id, environment_id)
        if env_value is None:
            return False
        self._data.delete("PhlagEnvironmentValue", env_value)
        return True
