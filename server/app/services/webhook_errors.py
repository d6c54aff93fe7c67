"""Failure kinds raised while delivering a webhook."""
from __future__ import annotations

from enum import Enum


class DispatchErrorKind(str, Enum):
    """Categories reported for failed deliveries."""

    TEMPLATE_RENDER_ERROR = "template_render_error"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    SSRF_BLOCKED = "ssrf_blocked"


class WebhookDispatchError(Exception):
    """Base class for delivery failures."""

    kind: DispatchErrorKind


class TemplateRenderError(WebhookDispatchError):
    """The payload template could not be rendered."""

    kind = DispatchErrorKind.TEMPLATE_RENDER_ERROR


class NetworkError(WebhookDispatchError):
    """Timeout, refused connection or failed name resolution."""

    kind = DispatchErrorKind.NETWORK_ERROR


class HttpError(WebhookDispatchError):
    """The endpoint answered with a non-2xx status."""

    kind = DispatchErrorKind.HTTP_ERROR

    def __init__(self, status_code: int, response_body: str) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(f"HTTP {status_code}: {response_body[:200]}")


class SsrfBlocked(WebhookDispatchError):
    """The webhook host resolves to a private network address."""

    kind = DispatchErrorKind.SSRF_BLOCKED
