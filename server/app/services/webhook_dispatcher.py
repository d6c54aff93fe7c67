"""Webhook delivery for flag and environment value changes."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlparse

import httpx

from app.core.config import Settings, get_settings
from app.services.flag_values import format_datetime_iso8601
from app.services.network_guard import Resolver, find_private_address, resolve_host
from app.services.payload_renderer import FlagSnapshot, PayloadRenderer, build_context
from app.services.repository import DataAccess
from app.services.webhook_errors import (
    DispatchErrorKind,
    HttpError,
    NetworkError,
    SsrfBlocked,
    WebhookDispatchError,
)
from app.services.webhook_validator import is_local_test_host

logger = logging.getLogger(__name__)

ENVIRONMENT_VALUE_UPDATED = "environment_value_updated"


@dataclass
class DeliveryResult:
    """Outcome of delivering one payload to one webhook."""

    success: bool
    status_code: int = 0
    response_body: str = ""
    error: str | None = None
    error_kind: DispatchErrorKind | None = None
    attempts: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status_code": self.status_code,
            "response_body": self.response_body,
            "error": self.error,
        }


class WebhookDispatcher:
    """Selects subscribed webhooks, renders their payloads and POSTs them.

    ``dispatch`` and ``dispatch_environment_change`` never raise: every
    failure is logged and reported through the returned results so the
    mutation that triggered them always completes. ``dispatch_test`` performs
    a single delivery and returns its result for display.
    """

    def __init__(
        self,
        data: DataAccess,
        settings: Settings | None = None,
        renderer: PayloadRenderer | None = None,
        transport: httpx.BaseTransport | None = None,
        resolver: Resolver = resolve_host,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            data: Collaborator used to read webhooks, flags and environments
            settings: Application settings (defaults to the cached instance)
            renderer: Payload renderer (defaults to a new sandboxed renderer)
            transport: Optional httpx transport, used by tests to fake endpoints
            resolver: Host name resolver used by the private-network guard
        """
        settings = settings or get_settings()
        self._data = data
        self._renderer = renderer or PayloadRenderer()
        self._transport = transport
        self._resolver = resolver
        self._enabled = settings.webhooks_enabled
        self._timeout = settings.webhooks_timeout
        self._max_retries = settings.webhooks_max_retries
        self._retry_delay = settings.webhooks_retry_delay
        self._max_body = settings.webhooks_max_response_body

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def dispatch(
        self,
        event_type: str,
        flag: Any,
        previous_flag: FlagSnapshot | None = None,
    ) -> list[DeliveryResult]:
        """Notify webhooks subscribed to a flag lifecycle event.

        Args:
            event_type: "created", "updated", "deleted" or any other subscribed name
            flag: Current flag
            previous_flag: Snapshot taken before the mutation (updates only)

        Returns:
            One result per webhook that was attempted; empty when none matched
        """
        if not self._enabled:
            return []

        try:
            webhooks = self._matching_webhooks(event_type, {"is_active": True})
            if not webhooks:
                logger.debug(f"No webhooks subscribed to '{event_type}'")
                return []

            snapshot = self.snapshot(flag)
            results = []
            for webhook in webhooks:
                context = build_context(event_type, snapshot, previous=previous_flag)
                result = self._deliver(webhook, context)
                self._log_result(webhook, event_type, snapshot.name, result)
                results.append(result)
            return results
        except Exception as e:
            logger.error(f"Webhook dispatch for '{event_type}' failed: {e}", exc_info=True)
            return []

    def dispatch_environment_change(
        self,
        event_type: str,
        environment_value: Any,
        previous_flag: FlagSnapshot | None = None,
    ) -> list[DeliveryResult]:
        """Notify webhooks that opted into environment value changes.

        Args:
            event_type: Normally "environment_value_updated"
            environment_value: The saved environment value row
            previous_flag: Snapshot of the flag taken before the change, if known

        Returns:
            One result per webhook that was attempted
        """
        if not self._enabled:
            return []

        try:
            flag = self._data.get("Phlag", environment_value.flag_id)
            environment = self._data.get("PhlagEnvironment", environment_value.environment_id)
            if flag is None or environment is None:
                logger.warning(
                    f"Skipping '{event_type}' dispatch: flag {environment_value.flag_id} "
                    f"or environment {environment_value.environment_id} no longer exists"
                )
                return []

            webhooks = self._matching_webhooks(
                event_type, {"is_active": True, "include_environment_changes": True}
            )
            if not webhooks:
                logger.debug(f"No webhooks subscribed to '{event_type}'")
                return []

            snapshot = self.snapshot(flag)
            changed = {
                "name": environment.name,
                "value": environment_value.value,
                "start_datetime": format_datetime_iso8601(environment_value.start_datetime),
                "end_datetime": format_datetime_iso8601(environment_value.end_datetime),
            }
            results = []
            for webhook in webhooks:
                context = build_context(
                    event_type, snapshot, previous=previous_flag, changed_environment=changed
                )
                result = self._deliver(webhook, context)
                self._log_result(webhook, event_type, snapshot.name, result)
                results.append(result)
            return results
        except Exception as e:
            logger.error(f"Webhook environment dispatch for '{event_type}' failed: {e}", exc_info=True)
            return []

    def dispatch_test(self, webhook: Any, flag: Any) -> DeliveryResult:
        """Deliver an "updated" event for ``flag`` to ``webhook`` and report the outcome.

        The flag's current state doubles as the previous state so templates
        referencing ``previous`` render as they would for a real update.
        """
        try:
            snapshot = self.snapshot(flag)
            context = build_context("updated", snapshot, previous=snapshot)
        except Exception as e:
            logger.error(f"Building test payload for webhook '{webhook.name}' failed: {e}", exc_info=True)
            return DeliveryResult(success=False, error=str(e))

        result = self._deliver(webhook, context)
        self._log_result(webhook, "test", snapshot.name, result)
        return result

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def snapshot(self, flag: Any) -> FlagSnapshot:
        """Capture a flag and its stored environment values, sorted by environment name."""
        environments = []
        for env_value in self._data.find("PhlagEnvironmentValue", {"flag_id": flag.id}).values():
            environment = self._data.get("PhlagEnvironment", env_value.environment_id)
            if environment is None:
                continue
            environments.append(
                {
                    "name": environment.name,
                    "value": env_value.value,
                    "start_datetime": format_datetime_iso8601(env_value.start_datetime),
                    "end_datetime": format_datetime_iso8601(env_value.end_datetime),
                }
            )
        environments.sort(key=lambda env: env["name"])

        return FlagSnapshot(
            name=flag.name,
            type=getattr(flag.type, "value", flag.type),
            description=flag.description,
            environments=environments,
        )

    def _matching_webhooks(self, event_type: str, criteria: dict[str, Any]) -> list[Any]:
        candidates: Iterable[Any] = self._data.find("PhlagWebhook", criteria).values()
        return [webhook for webhook in candidates if event_type in webhook.event_types]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _deliver(self, webhook: Any, context: dict[str, Any]) -> DeliveryResult:
        """Render and send, converting every failure into a DeliveryResult."""
        try:
            return self._attempt_delivery(webhook, context)
        except Exception as e:
            # Request building can fail outside httpx's error hierarchy (bad header encoding)
            logger.error(f"Webhook '{webhook.name}' request could not be sent: {e}", exc_info=True)
            error = NetworkError(f"Webhook request failed: {e}")
            return DeliveryResult(success=False, error=str(error), error_kind=error.kind)

    def _attempt_delivery(self, webhook: Any, context: dict[str, Any]) -> DeliveryResult:
        try:
            payload = self._renderer.render(webhook.payload_template, context)
            self._guard(webhook.url)
        except WebhookDispatchError as e:
            return self._failure(e, attempts=0)

        max_attempts = self._max_retries + 1
        attempts = 0

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            while True:
                attempts += 1
                try:
                    response = self._send(client, webhook, payload)
                except WebhookDispatchError as e:
                    logger.warning(
                        f"Webhook '{webhook.name}' attempt {attempts}/{max_attempts} failed: {e}"
                    )
                    if attempts >= max_attempts:
                        return self._failure(e, attempts)
                else:
                    return DeliveryResult(
                        success=True,
                        status_code=response.status_code,
                        response_body=self._truncate(response.text),
                        attempts=attempts,
                    )

                if self._retry_delay:
                    time.sleep(self._retry_delay)

    def _failure(self, error: WebhookDispatchError, attempts: int) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            status_code=getattr(error, "status_code", 0),
            response_body=self._truncate(getattr(error, "response_body", "")),
            error=str(error),
            error_kind=error.kind,
            attempts=attempts,
        )

    def _guard(self, url: str) -> None:
        """Refuse hosts that resolve into private networks.

        Raises:
            SsrfBlocked: If the host points at a private address
            NetworkError: If the host cannot be resolved
        """
        host = urlparse(url).hostname
        if not host or is_local_test_host(host):
            return
        try:
            address = find_private_address(host, self._resolver)
        except OSError as e:
            raise NetworkError(f"Could not resolve {host}: {e}") from e
        if address is not None:
            raise SsrfBlocked(f"Webhook host {host} resolves to private address {address}")

    def _send(self, client: httpx.Client, webhook: Any, payload: str) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        headers.update(webhook.headers)

        try:
            response = client.post(webhook.url, content=payload.encode("utf-8"), headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Webhook request timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Webhook request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code, response.text)
        return response

    def _truncate(self, body: str) -> str:
        if len(body) > self._max_body:
            return body[: self._max_body] + "... (truncated)"
        return body

    def _log_result(self, webhook: Any, event_type: str, flag_name: str, result: DeliveryResult) -> None:
        if result.success:
            logger.info(
                f"Webhook '{webhook.name}' delivered {event_type} for flag '{flag_name}' "
                f"(status: {result.status_code}, attempts: {result.attempts})"
            )
        else:
            logger.error(
                f"Webhook '{webhook.name}' failed for {event_type} on flag '{flag_name}': "
                f"{result.error} ({result.error_kind.value if result.error_kind else 'unknown'})"
            )
