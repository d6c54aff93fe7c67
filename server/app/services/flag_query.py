"""Read paths that evaluate flags for consumers of the flag-state API."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.services.flag_values import FlagValue, evaluate, format_datetime_iso8601, utc_now
from app.services.repository import DataAccess

logger = logging.getLogger(__name__)


class FlagQueryService:
    """Evaluates flags against one environment.

    Nothing is cached: every call reads the stored rows again, so a value
    changed through the admin API is visible on the next request.
    """

    def __init__(self, data: DataAccess) -> None:
        self._data = data

    def get_environment(self, name: str) -> Any | None:
        """Resolve an environment by name."""
        environments = self._data.find("PhlagEnvironment", {"name": name})
        return next(iter(environments.values()), None)

    def _environment_value(self, flag: Any, environment: Any) -> Any | None:
        rows = self._data.find(
            "PhlagEnvironmentValue",
            {"flag_id": flag.id, "environment_id": environment.id},
        )
        return next(iter(rows.values()), None)

    def get_flag_value(self, name: str, environment: Any, now: datetime | None = None) -> FlagValue:
        """Evaluate a single flag; an unknown name yields None."""
        flags = self._data.find("Phlag", {"name": name})
        flag = next(iter(flags.values()), None)
        if flag is None:
            logger.debug(f"Flag '{name}' requested for '{environment.name}' does not exist")
            return None

        return evaluate(flag, self._environment_value(flag, environment), now or utc_now())

    def get_all_flags(self, environment: Any, now: datetime | None = None) -> dict[str, FlagValue]:
        """Evaluate every flag and map flag name to value.

        Flags without a value in the environment are kept with ``None``.
        """
        now = now or utc_now()
        return {
            flag.name: evaluate(flag, self._environment_value(flag, environment), now)
            for flag in self._data.find("Phlag", order_by=["name"]).values()
        }

    def get_flags(self, environment: Any, now: datetime | None = None) -> list[dict[str, Any]]:
        """Evaluate every flag, including its type and activation window."""
        now = now or utc_now()
        results: list[dict[str, Any]] = []

        for flag in self._data.find("Phlag", order_by=["name"]).values():
            env_value = self._environment_value(flag, environment)
            results.append(
                {
                    "name": flag.name,
                    "type": getattr(flag.type, "value", flag.type),
                    "value": evaluate(flag, env_value, now),
                    "start_datetime": format_datetime_iso8601(env_value.start_datetime) if env_value else None,
                    "end_datetime": format_datetime_iso8601(env_value.end_datetime) if env_value else None,
                }
            )

        return results
