"""Tests for WebhookDispatcher."""
from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

import httpx
import pytest

from app.core.config import Settings
from app.models import FlagType
from app.services.repository import Repository
from app.services.webhook_dispatcher import ENVIRONMENT_VALUE_UPDATED, WebhookDispatcher
from app.services.webhook_errors import DispatchErrorKind

from conftest import RecordingEndpoint, public_resolver


@pytest.fixture
def make_dispatcher(repository: Repository, endpoint: RecordingEndpoint):
    """Build a dispatcher with custom settings or resolver."""

    def _make(resolver=public_resolver, **overrides) -> WebhookDispatcher:
        settings = Settings(webhooks_retry_delay=0, **overrides)
        return WebhookDispatcher(
            repository,
            settings=settings,
            transport=httpx.MockTransport(endpoint),
            resolver=resolver,
        )

    return _make


@pytest.fixture
def flag(make_flag, make_environment, set_value):
    """A switch configured in two environments."""
    flag = make_flag("checkout_v2", FlagType.SWITCH, "New checkout")
    set_value(flag, make_environment("staging", sort_order=1), "true")
    set_value(flag, make_environment("production"), "false", end=datetime(2030, 1, 1))
    return flag


class TestDispatchSubscriptions:
    """Which webhooks receive which events."""

    def test_delivers_to_subscribed_webhook(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"], headers={"X-Signature": "abc123"})

        results = dispatcher.dispatch("created", flag)

        assert len(results) == 1
        assert results[0].success is True
        assert results[0].status_code == 200
        assert results[0].attempts == 1

        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://hooks.example.com/phlag"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Signature"] == "abc123"

        payload = endpoint.payloads()[0]
        assert payload["event"] == "created"
        assert payload["flag"]["name"] == "checkout_v2"
        assert payload["previous"] is None

    def test_snapshot_environments_sorted_by_name(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"])

        dispatcher.dispatch("created", flag)

        environments = endpoint.payloads()[0]["flag"]["environments"]
        assert environments == [
            {
                "name": "production",
                "value": "false",
                "start_datetime": None,
                "end_datetime": "2030-01-01T00:00:00+00:00",
            },
            {"name": "staging", "value": "true", "start_datetime": None, "end_datetime": None},
        ]

    def test_webhook_subscribed_to_other_event_is_skipped(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["deleted"])

        assert dispatcher.dispatch("created", flag) == []
        assert endpoint.requests == []

    def test_inactive_webhook_is_skipped(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"], is_active=False)

        assert dispatcher.dispatch("created", flag) == []
        assert endpoint.requests == []

    def test_each_matching_webhook_is_attempted(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(name="first", url="https://one.example.com/hook", event_types=["deleted"])
        make_webhook(name="second", url="https://two.example.com/hook", event_types=["deleted", "created"])
        make_webhook(name="third", url="https://three.example.com/hook", event_types=["created"])

        results = dispatcher.dispatch("deleted", flag)

        assert [result.success for result in results] == [True, True]
        assert [request.url.host for request in endpoint.requests] == ["one.example.com", "two.example.com"]

    def test_update_payload_carries_previous_snapshot(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, repository: Repository, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["updated"])
        previous = dispatcher.snapshot(flag)
        flag.description = "Rewritten checkout"
        repository.save("Phlag", flag)

        dispatcher.dispatch("updated", flag, previous)

        payload = endpoint.payloads()[0]
        assert payload["flag"]["description"] == "Rewritten checkout"
        assert payload["previous"]["description"] == "New checkout"
        assert len(payload["previous"]["environments"]) == 2

    def test_custom_event_names(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["archived"])

        results = dispatcher.dispatch("archived", flag)

        assert len(results) == 1
        assert endpoint.payloads()[0]["event"] == "archived"

    def test_disabled_webhooks_setting(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"])

        assert make_dispatcher(webhooks_enabled=False).dispatch("created", flag) == []
        assert endpoint.requests == []


class TestDispatchEnvironmentChange:
    """Environment value changes only reach webhooks that opted in."""

    def test_opted_out_webhook_never_receives_environment_changes(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, repository: Repository, make_webhook, flag
    ) -> None:
        make_webhook(event_types=[ENVIRONMENT_VALUE_UPDATED], include_environment_changes=False)
        env_value = next(iter(repository.find("PhlagEnvironmentValue", {"flag_id": flag.id}).values()))

        assert dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, env_value) == []
        assert endpoint.requests == []

    def test_opted_in_webhook_must_still_subscribe(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, repository: Repository, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["updated"], include_environment_changes=True)
        env_value = next(iter(repository.find("PhlagEnvironmentValue", {"flag_id": flag.id}).values()))

        assert dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, env_value) == []
        assert endpoint.requests == []

    def test_delivers_changed_environment(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, make_environment, set_value, flag
    ) -> None:
        make_webhook(event_types=[ENVIRONMENT_VALUE_UPDATED], include_environment_changes=True)
        previous = dispatcher.snapshot(flag)
        env_value = set_value(flag, make_environment("development"), "true")

        results = dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, env_value, previous)

        assert results[0].success is True
        payload = endpoint.payloads()[0]
        assert payload["event"] == ENVIRONMENT_VALUE_UPDATED
        assert payload["changed_environment"] == {
            "name": "development",
            "value": "true",
            "start_datetime": None,
            "end_datetime": None,
        }
        assert [env["name"] for env in payload["flag"]["environments"]] == ["development", "production", "staging"]
        assert [env["name"] for env in payload["previous"]["environments"]] == ["production", "staging"]

    def test_missing_flag_is_skipped(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook
    ) -> None:
        make_webhook(event_types=[ENVIRONMENT_VALUE_UPDATED], include_environment_changes=True)
        orphan = MagicMock(flag_id=999, environment_id=999)

        assert dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, orphan) == []
        assert endpoint.requests == []


class TestDeliveryFailures:
    """Retries and the failure categories reported for a delivery."""

    def test_retries_once_then_succeeds(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.Response(503, text="busy"), httpx.Response(202, text="accepted"))

        result = dispatcher.dispatch("created", flag)[0]

        assert result.success is True
        assert result.status_code == 202
        assert result.response_body == "accepted"
        assert result.attempts == 2
        assert len(endpoint.requests) == 2

    def test_http_error_after_retries(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.Response(500, text="boom"), httpx.Response(500, text="boom"))

        result = dispatcher.dispatch("created", flag)[0]

        assert result.success is False
        assert result.error_kind is DispatchErrorKind.HTTP_ERROR
        assert result.status_code == 500
        assert result.response_body == "boom"
        assert result.error == "HTTP 500: boom"
        assert result.attempts == 2

    def test_max_retries_setting(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(*(httpx.Response(500) for _ in range(5)))

        result = make_dispatcher(webhooks_max_retries=3).dispatch("created", flag)[0]

        assert result.attempts == 4
        assert len(endpoint.requests) == 4

    def test_no_retries(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.Response(404))

        result = make_dispatcher(webhooks_max_retries=0).dispatch("created", flag)[0]

        assert result.success is False
        assert result.attempts == 1

    def test_connection_error(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.ConnectError("Connection refused"), httpx.ConnectError("Connection refused"))

        result = dispatcher.dispatch("created", flag)[0]

        assert result.success is False
        assert result.error_kind is DispatchErrorKind.NETWORK_ERROR
        assert result.status_code == 0
        assert "Connection refused" in result.error

    def test_timeout(self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.ReadTimeout("timed out"), httpx.ReadTimeout("timed out"))

        result = dispatcher.dispatch("created", flag)[0]

        assert result.error_kind is DispatchErrorKind.NETWORK_ERROR
        assert "timed out" in result.error

    def test_private_address_is_blocked(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"], url="https://internal.example.com/hook")

        result = make_dispatcher(resolver=lambda host: ["10.0.0.5"]).dispatch("created", flag)[0]

        assert result.success is False
        assert result.error_kind is DispatchErrorKind.SSRF_BLOCKED
        assert result.attempts == 0
        assert endpoint.requests == []

    def test_private_ip_literal_is_blocked(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"], url="https://192.168.1.20/hook")

        result = dispatcher.dispatch("created", flag)[0]

        assert result.error_kind is DispatchErrorKind.SSRF_BLOCKED
        assert endpoint.requests == []

    def test_unresolvable_host(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        def failing_resolver(host: str) -> list[str]:
            raise OSError("Name or service not known")

        make_webhook(event_types=["created"])

        result = make_dispatcher(resolver=failing_resolver).dispatch("created", flag)[0]

        assert result.error_kind is DispatchErrorKind.NETWORK_ERROR
        assert endpoint.requests == []

    def test_localhost_skips_network_guard(
        self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        def resolver(host: str) -> list[str]:
            raise AssertionError("localhost must not be resolved")

        make_webhook(event_types=["created"], url="http://localhost:8080/hook")

        result = make_dispatcher(resolver=resolver).dispatch("created", flag)[0]

        assert result.success is True
        assert endpoint.requests[0].url.host == "localhost"

    def test_template_error(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(event_types=["created"], payload_template="{{ flag.name ")

        result = dispatcher.dispatch("created", flag)[0]

        assert result.success is False
        assert result.error_kind is DispatchErrorKind.TEMPLATE_RENDER_ERROR
        assert endpoint.requests == []

    def test_one_failure_does_not_stop_other_webhooks(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(name="broken", event_types=["created"], payload_template="{% if %}")
        make_webhook(name="working", event_types=["created"])

        results = dispatcher.dispatch("created", flag)

        assert [result.success for result in results] == [False, True]
        assert len(endpoint.requests) == 1

    def test_unsendable_header_fails_only_that_webhook(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        make_webhook(name="accented", event_types=["created"], headers={"X-Team": "café"})
        make_webhook(name="plain", event_types=["created"])

        results = dispatcher.dispatch("created", flag)

        assert [result.success for result in results] == [False, True]
        assert results[0].error_kind is DispatchErrorKind.NETWORK_ERROR
        assert results[0].error.startswith("Webhook request failed")
        assert len(endpoint.requests) == 1

    def test_response_body_is_truncated(self, make_dispatcher, endpoint: RecordingEndpoint, make_webhook, flag) -> None:
        make_webhook(event_types=["created"])
        endpoint.queue(httpx.Response(200, text="x" * 50))

        result = make_dispatcher(webhooks_max_response_body=10).dispatch("created", flag)[0]

        assert result.response_body == "x" * 10 + "... (truncated)"

    def test_dispatch_never_raises(self, test_settings: Settings, flag) -> None:
        data = MagicMock()
        data.find.side_effect = RuntimeError("database is gone")
        dispatcher = WebhookDispatcher(data, settings=test_settings, resolver=public_resolver)

        assert dispatcher.dispatch("created", flag) == []
        assert dispatcher.dispatch_environment_change(ENVIRONMENT_VALUE_UPDATED, MagicMock()) == []


class TestDispatchTest:
    """Single synchronous delivery used by the webhook test endpoint."""

    def test_sends_updated_event_with_stored_data(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        webhook = make_webhook(event_types=["deleted"])

        result = dispatcher.dispatch_test(webhook, flag)

        assert result.as_dict() == {"success": True, "status_code": 200, "response_body": "ok", "error": None}
        payload = endpoint.payloads()[0]
        assert payload["event"] == "updated"
        assert payload["previous"] == payload["flag"]

    def test_reports_failure(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        webhook = make_webhook(event_types=["updated"])
        endpoint.queue(httpx.Response(401, text="bad token"), httpx.Response(401, text="bad token"))

        result = dispatcher.dispatch_test(webhook, flag)

        assert result.success is False
        assert result.status_code == 401
        assert result.error_kind is DispatchErrorKind.HTTP_ERROR

    def test_unsendable_header_is_reported(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        webhook = make_webhook(headers={"X-Team": "café"})

        result = dispatcher.dispatch_test(webhook, flag)

        assert result.success is False
        assert result.status_code == 0
        assert result.error_kind is DispatchErrorKind.NETWORK_ERROR
        assert endpoint.requests == []

    def test_uses_custom_template(
        self, dispatcher: WebhookDispatcher, endpoint: RecordingEndpoint, make_webhook, flag
    ) -> None:
        webhook = make_webhook(payload_template='{"flag": {{ flag.name|json }}, "event": {{ event_type|json }}}')

        dispatcher.dispatch_test(webhook, flag)

        assert endpoint.payloads() == [{"flag": "checkout_v2", "event": "updated"}]
