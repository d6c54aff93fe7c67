"""Pre-save validation of webhook configuration."""
from __future__ import annotations

import json
from enum import Enum
from typing import Any
from urllib.parse import urlparse

LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1"})


class WebhookValidationErrorCode(str, Enum):
    """Reasons a webhook configuration is rejected, in the order they are checked."""

    URL_REQUIRED = "url_required"
    URL_INVALID = "url_invalid"
    HTTPS_REQUIRED = "https_required"
    EVENT_TYPES_REQUIRED = "event_types_required"
    EVENT_TYPES_INVALID_JSON = "event_types_invalid_json"
    EVENT_TYPES_EMPTY = "event_types_empty"
    HEADERS_INVALID_JSON = "headers_invalid_json"


_MESSAGES = {
    WebhookValidationErrorCode.URL_REQUIRED: "URL is required",
    WebhookValidationErrorCode.URL_INVALID: "URL is not valid",
    WebhookValidationErrorCode.HTTPS_REQUIRED: "URL must use HTTPS (except localhost)",
    WebhookValidationErrorCode.EVENT_TYPES_REQUIRED: "At least one event type is required",
    WebhookValidationErrorCode.EVENT_TYPES_INVALID_JSON: "event_types_json must be valid JSON",
    WebhookValidationErrorCode.EVENT_TYPES_EMPTY: "At least one event type must be specified",
    WebhookValidationErrorCode.HEADERS_INVALID_JSON: "headers_json must be a JSON object of string values",
}


class WebhookValidationError(ValueError):
    """Raised when a webhook configuration fails one of the validation rules."""

    def __init__(self, code: WebhookValidationErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or _MESSAGES[code]
        super().__init__(self.message)


def is_local_test_host(host: str | None) -> bool:
    """Hosts allowed to receive plain HTTP deliveries."""
    return host in LOCAL_TEST_HOSTS


def _validate_url(url: str | None) -> None:
    if not url:
        raise WebhookValidationError(WebhookValidationErrorCode.URL_REQUIRED)

    try:
        parsed = urlparse(url)
        host = parsed.hostname
        parsed.port  # raises ValueError for out-of-range or non-numeric ports
    except ValueError:
        raise WebhookValidationError(WebhookValidationErrorCode.URL_INVALID) from None

    if not parsed.scheme or not host or any(char.isspace() for char in url):
        raise WebhookValidationError(WebhookValidationErrorCode.URL_INVALID)

    scheme = parsed.scheme.lower()
    if scheme == "https":
        return
    if scheme == "http" and is_local_test_host(host):
        return
    raise WebhookValidationError(WebhookValidationErrorCode.HTTPS_REQUIRED)


def _validate_event_types(event_types_json: str | None) -> None:
    if not event_types_json:
        raise WebhookValidationError(WebhookValidationErrorCode.EVENT_TYPES_REQUIRED)

    try:
        event_types = json.loads(event_types_json)
    except ValueError:
        raise WebhookValidationError(WebhookValidationErrorCode.EVENT_TYPES_INVALID_JSON) from None

    if not isinstance(event_types, list) or not event_types:
        raise WebhookValidationError(WebhookValidationErrorCode.EVENT_TYPES_EMPTY)


def _validate_headers(headers_json: str | None) -> None:
    if headers_json is None:
        return

    try:
        headers = json.loads(headers_json)
    except ValueError:
        raise WebhookValidationError(WebhookValidationErrorCode.HEADERS_INVALID_JSON) from None

    # Header names and values go on the wire as ASCII
    if not isinstance(headers, dict) or not all(
        isinstance(name, str) and isinstance(value, str) and name.isascii() and value.isascii()
        for name, value in headers.items()
    ):
        raise WebhookValidationError(WebhookValidationErrorCode.HEADERS_INVALID_JSON)


def validate_webhook(webhook: Any) -> None:
    """Check a webhook's URL, event types and headers; the first failing rule wins.

    Accepts anything exposing ``url``, ``event_types_json`` and
    ``headers_json`` (ORM model or request schema).

    Raises:
        WebhookValidationError: With the code of the first rule that failed
    """
    _validate_url(webhook.url)
    _validate_event_types(webhook.event_types_json)
    _validate_headers(webhook.headers_json)
