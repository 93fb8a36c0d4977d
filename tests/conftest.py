"""Shared test fixtures for hookscout."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from src.audit.logger import AuditLogger
from src.models import (
    AuditEvent,
    AuditEventType,
    RiskLevel,
    WebhookRecord,
)
from src.webhook.models import InboundRequest

TEST_TOKEN = "test-token-0123456789"

HTML_PAGE = (
    "<html><head><title>T</title>"
    '<meta name="description" content="D"></head>'
    '<body><a href="/a">x</a><img src="/i.png"></body></html>'
)

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def route_by_url(responses: dict[str, httpx.Response | Exception]) -> Handler:
    """Handler answering by full URL; exceptions are raised, unknown URLs 404."""

    def _handler(request: httpx.Request) -> httpx.Response:
        outcome = responses.get(str(request.url))
        if outcome is None:
            return httpx.Response(404, text="missing")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return _handler


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.AUTH_FAILURE,
        "action": "test_action",
        "result": "failure",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_inbound_request(**kwargs: Any) -> InboundRequest:
    """Factory for InboundRequest with sensible defaults."""
    defaults: dict[str, Any] = {
        "method": "POST",
        "url": "/webhook",
        "headers": {"content-type": "application/json"},
        "body": {},
        "query": {},
        "ip": "127.0.0.1",
    }
    defaults.update(kwargs)
    return InboundRequest(**defaults)


def make_webhook_record(**kwargs: Any) -> WebhookRecord:
    """Factory for WebhookRecord with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": "1700000000000",
        "timestamp": "2026-01-01T00:00:00+00:00",
        "headers": {},
        "body": None,
        "method": "POST",
        "url": "/webhook",
    }
    defaults.update(kwargs)
    return WebhookRecord(**defaults)
