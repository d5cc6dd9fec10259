from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

import pytest
import requests

from infochat import config
from infochat.provider import (
    PLACEHOLDER_REPLY,
    PlaceholderProvider,
    ProviderError,
    WebhookProvider,
    make_provider,
)

SENT_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class _StubResponse:
    def __init__(self, *, payload: Any = None, status: int = 200, text: str = "") -> None:
        self._payload = payload
        self.status_code = status
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}", response=self)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _StubSession:
    def __init__(self, response: Any) -> None:
        self._response = response
        self.calls: List[Tuple[str, Dict[str, Any], float]] = []
        self.closed = False

    def post(self, url: str, json: Dict[str, Any], timeout: float):
        self.calls.append((url, json, timeout))
        if isinstance(self._response, BaseException):
            raise self._response
        return self._response

    def close(self) -> None:
        self.closed = True


def _respond(provider, text: str = "Hello"):
    return asyncio.run(provider.respond(text, SENT_AT))


def test_placeholder_provider_returns_fixed_text() -> None:
    assert _respond(PlaceholderProvider()) == PLACEHOLDER_REPLY
    assert _respond(PlaceholderProvider("custom")) == "custom"


def test_webhook_posts_message_and_timestamp() -> None:
    session = _StubSession(_StubResponse(payload={"response": "An infographic outline"}))
    provider = WebhookProvider("https://hooks.example/chat", timeout=5.0, session=session)

    reply = _respond(provider, "Make a chart")

    assert reply == "An infographic outline"
    url, payload, timeout = session.calls[0]
    assert url == "https://hooks.example/chat"
    assert payload == {"message": "Make a chart", "timestamp": "2025-01-01T12:00:00+00:00"}
    assert timeout == 5.0


def test_webhook_missing_response_field_returns_none() -> None:
    session = _StubSession(_StubResponse(payload={"other": "value"}))
    provider = WebhookProvider("https://hooks.example/chat", session=session)

    assert _respond(provider) is None


def test_webhook_non_object_payload_returns_none() -> None:
    session = _StubSession(_StubResponse(payload=["unexpected"]))
    provider = WebhookProvider("https://hooks.example/chat", session=session)

    assert _respond(provider) is None


def test_webhook_http_error_raises_provider_error() -> None:
    session = _StubSession(_StubResponse(payload={"error": "nope"}, status=500))
    provider = WebhookProvider("https://hooks.example/chat", session=session)

    with pytest.raises(ProviderError, match="Webhook request failed"):
        _respond(provider)


def test_webhook_transport_error_raises_provider_error() -> None:
    session = _StubSession(requests.exceptions.ConnectionError("refused"))
    provider = WebhookProvider("https://hooks.example/chat", session=session)

    with pytest.raises(ProviderError):
        _respond(provider)


def test_webhook_invalid_json_raises_provider_error() -> None:
    session = _StubSession(_StubResponse(payload=None, text="<html>oops</html>"))
    provider = WebhookProvider("https://hooks.example/chat", session=session)

    with pytest.raises(ProviderError, match="not valid JSON"):
        _respond(provider)


def test_webhook_validates_arguments() -> None:
    with pytest.raises(ValueError):
        WebhookProvider("", session=_StubSession(None))
    with pytest.raises(ValueError):
        WebhookProvider("https://hooks.example/chat", timeout=0, session=_StubSession(None))


def test_webhook_adds_missing_scheme() -> None:
    provider = WebhookProvider("hooks.example/chat", session=_StubSession(None))

    assert provider.url == "http://hooks.example/chat"


def test_webhook_context_manager_closes_session() -> None:
    session = _StubSession(_StubResponse(payload={"response": "ok"}))

    with WebhookProvider("https://hooks.example/chat", session=session) as provider:
        assert _respond(provider) == "ok"

    assert session.closed is True


def test_make_provider_uses_configured_webhook(monkeypatch) -> None:
    monkeypatch.setattr(config, "WEBHOOK_URL", None)
    assert isinstance(make_provider(), PlaceholderProvider)

    monkeypatch.setattr(config, "WEBHOOK_URL", "https://hooks.example/chat")
    provider = make_provider()
    try:
        assert isinstance(provider, WebhookProvider)
        assert provider.url == "https://hooks.example/chat"
    finally:
        provider.close()
