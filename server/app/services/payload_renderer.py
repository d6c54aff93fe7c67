"""Jinja2 rendering of webhook payloads."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from jinja2.sandbox import SandboxedEnvironment

from app.services.webhook_errors import TemplateRenderError

DEFAULT_TEMPLATE = """{
  "event": {{ event_type|tojson }},
  "flag": {
    "name": {{ flag.name|tojson }},
    "type": {{ flag.type|tojson }},
    "description": {{ flag.description|tojson }},
    "environments": [
      {% for env in flag.environments %}
      {
        "name": {{ env.name|tojson }},
        "value": {{ env.value|tojson }},
        "start_datetime": {{ env.start_datetime|tojson }},
        "end_datetime": {{ env.end_datetime|tojson }}
      }{% if not loop.last %},{% endif %}
      {% endfor %}
    ]
  },
  "previous": {% if previous %}{
    "name": {{ previous.name|tojson }},
    "type": {{ previous.type|tojson }},
    "description": {{ previous.description|tojson }},
    "environments": [
      {% for env in old_environments %}
      {
        "name": {{ env.name|tojson }},
        "value": {{ env.value|tojson }},
        "start_datetime": {{ env.start_datetime|tojson }},
        "end_datetime": {{ env.end_datetime|tojson }}
      }{% if not loop.last %},{% endif %}
      {% endfor %}
    ]
  }{% else %}null{% endif %},
{% if changed_environment %}
  "changed_environment": {
    "name": {{ changed_environment.name|tojson }},
    "value": {{ changed_environment.value|tojson }},
    "start_datetime": {{ changed_environment.start_datetime|tojson }},
    "end_datetime": {{ changed_environment.end_datetime|tojson }}
  },
{% endif %}
  "timestamp": {{ timestamp|tojson }}
}
"""


@dataclass
class FlagSnapshot:
    """Flag state exposed to payload templates.

    ``environments`` holds ``{name, value, start_datetime, end_datetime}``
    entries sorted by environment name, datetimes already ISO-8601 strings.
    """

    name: str
    type: str
    description: str | None
    environments: list[dict[str, Any]] = field(default_factory=list)

    def as_context(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "environments": [dict(env) for env in self.environments],
        }


def build_context(
    event_type: str,
    flag: FlagSnapshot,
    previous: FlagSnapshot | None = None,
    changed_environment: Mapping[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Assemble the variables available to a payload template."""
    moment = timestamp or datetime.now(timezone.utc)
    flag_context = flag.as_context()
    previous_context = previous.as_context() if previous is not None else None

    return {
        "event_type": event_type,
        "flag": flag_context,
        "environments": flag_context["environments"],
        "previous": previous_context,
        "old_environments": previous_context["environments"] if previous_context else [],
        "old_value": previous.description if previous is not None else None,
        "changed_environment": dict(changed_environment) if changed_environment else None,
        "timestamp": moment.isoformat(timespec="seconds"),
    }


class PayloadRenderer:
    """Renders webhook payload templates in a sandbox.

    Autoescaping is off so output is emitted raw; template authors use the
    ``tojson`` (or ``json``) filter to turn values into JSON literals.
    """

    def __init__(self) -> None:
        self._env = SandboxedEnvironment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
        self._env.filters["json"] = json.dumps
        self._env.filters["json_encode"] = json.dumps
        # Output is never escaped, so "raw" only keeps ``x|json_encode|raw`` templates working
        self._env.filters["raw"] = lambda value: value

    def render(self, template: str | None, context: Mapping[str, Any]) -> str:
        """Render ``template`` (or the default one when empty) against ``context``.

        Raises:
            TemplateRenderError: If the template does not compile or fails while rendering
        """
        source = template if template and template.strip() else DEFAULT_TEMPLATE
        try:
            return self._env.from_string(source).render(**context)
        except Exception as e:
            raise TemplateRenderError(f"Template rendering failed: {e}") from e
