"""Response providers: the seam between the chat session and whatever answers it.

A provider turns one user message into one reply.  The session only relies on
``respond`` being awaitable and either returning text (``None`` or blank when
the backend had nothing to say) or raising.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Optional

import requests

from . import config

PLACEHOLDER_REPLY = (
    "🔧 System ready for API integration. "
    "Connect your n8n.io workflow here to get ChatGPT responses."
)


class ProviderError(RuntimeError):
    """Raised when a response provider cannot produce a reply."""


class ResponseProvider:
    """Protocol-like base for reply backends."""

    async def respond(self, user_text: str, sent_at: datetime) -> Optional[str]:  # pragma: no cover - contract
        raise NotImplementedError


class PlaceholderProvider(ResponseProvider):
    def __init__(self, text: str = PLACEHOLDER_REPLY) -> None:
        self.text = text

    async def respond(self, user_text: str, sent_at: datetime) -> Optional[str]:
        return self.text


class WebhookProvider(ResponseProvider):
    """POST each message to a workflow webhook and read its ``response`` field."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not url:
            raise ValueError("url must be provided")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if not url.startswith("http://") and not url.startswith("https://"):
            url = "http://" + url
        self.url = url
        self.timeout = timeout
        self._logger = logger or logging.getLogger(__name__)
        if session is None:
            self._session = requests.Session()
            self._close_session = self._session.close
        else:
            self._session = session
            self._close_session = getattr(session, "close", lambda: None)

    def __enter__(self) -> "WebhookProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._close_session()

    def _post(self, user_text: str, sent_at: datetime) -> Optional[str]:
        payload = {"message": user_text, "timestamp": sent_at.isoformat()}
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            self._logger.error("Webhook request to %s failed: %s", self.url, exc)
            raise ProviderError(f"Webhook request failed: {exc}") from exc

        try:
            data: Any = response.json()
        except ValueError as exc:
            preview = (getattr(response, "text", "") or "")[:400]
            self._logger.error("Webhook returned a non-JSON body: %s", preview)
            raise ProviderError("Webhook response was not valid JSON") from exc

        if not isinstance(data, dict):
            self._logger.warning("Webhook response is not an object: %s", json.dumps(data)[:400])
            return None
        reply = data.get("response")
        if reply is None:
            return None
        return str(reply)

    async def respond(self, user_text: str, sent_at: datetime) -> Optional[str]:
        return await asyncio.to_thread(self._post, user_text, sent_at)


def make_provider(
    url: Optional[str] = None,
    *,
    timeout: Optional[float] = None,
    logger: Optional[logging.Logger] = None,
) -> ResponseProvider:
    selected = url or config.WEBHOOK_URL
    if not selected:
        return PlaceholderProvider()
    return WebhookProvider(selected, timeout=timeout or config.PROVIDER_TIMEOUT or 30.0, logger=logger)


__all__ = [
    "PLACEHOLDER_REPLY",
    "PlaceholderProvider",
    "ProviderError",
    "ResponseProvider",
    "WebhookProvider",
    "make_provider",
]
