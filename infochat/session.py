"""Chat session state machine.

``ChatSession`` owns the transcript and the input/busy state of one chat.  A
submission moves it from ``IDLE`` to ``AWAITING_REPLY``: the user message is
appended and recorded in history, a typing marker is shown for a randomised
delay, the response provider is awaited, and its reply (or an error notice)
is appended before the session drops back to ``IDLE``.  Only one submission
may be in flight; further ones are ignored until it settles.

Renderers drive the session through :meth:`ChatSession.exchange`, which
yields a :class:`~infochat.models.SessionEvent` for every visible transition,
or through :meth:`ChatSession.submit` when only the outcome matters.  Once a
submission is accepted its reply is produced by a task of its own, so a
renderer that stops listening part way does not leave the user message
unanswered.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from . import config
from .connectivity import ConnectivityMonitor
from .history import HistoryManager
from .models import Message, MessageKind, Sender, SessionEvent, SessionPhase, SessionState
from .provider import ResponseProvider

WELCOME_TEXT = (
    "👋 Welcome! Describe the infographic you want to create and I'll help you bring it to life."
)
NO_INTERNET_NOTICE = "⚠️ No internet connection. Please check your network and try again."
FALLBACK_REPLY = "Sorry, I couldn't process your request."
ERROR_NOTICE = "⚠️ Sorry, there was an error processing your request. Please try again."

PLACEHOLDER_READY = "Describe the infographic you want to create..."
PLACEHOLDER_BUSY = "Processing your request..."
PLACEHOLDER_OFFLINE = "No internet connection - Please check your network"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession:
    def __init__(
        self,
        history: HistoryManager,
        connectivity: ConnectivityMonitor,
        provider: ResponseProvider,
        *,
        typing_delay: Optional[Tuple[int, int]] = None,
        provider_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        min_ms, max_ms = typing_delay if typing_delay is not None else (config.TYPING_MIN_MS, config.TYPING_MAX_MS)
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError(f"Invalid typing delay bounds: ({min_ms}, {max_ms})")
        if provider_timeout is not None and provider_timeout <= 0:
            raise ValueError("provider_timeout must be positive")

        self.history = history
        self.connectivity = connectivity
        self.provider = provider
        self.typing_delay = (min_ms, max_ms)
        self.provider_timeout = provider_timeout
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or _utcnow
        self._logger = logger or logging.getLogger(__name__)

        self._ids = itertools.count(1)
        self._transcript: List[Message] = []
        self._phase = SessionPhase.IDLE
        self._typing = False
        self._inflight: Optional["asyncio.Future[Message]"] = None
        self._online = connectivity.online
        self._unsubscribe = connectivity.subscribe(self.on_connectivity_change)

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._phase is SessionPhase.AWAITING_REPLY

    @property
    def online(self) -> bool:
        return self._online

    @property
    def typing(self) -> bool:
        return self._typing

    @property
    def input_enabled(self) -> bool:
        return self._online and not self.busy

    @property
    def transcript(self) -> List[Message]:
        return list(self._transcript)

    @property
    def placeholder(self) -> str:
        if self.busy:
            return PLACEHOLDER_BUSY
        if not self._online:
            return PLACEHOLDER_OFFLINE
        return PLACEHOLDER_READY

    @property
    def state(self) -> SessionState:
        return SessionState(
            transcript=tuple(self._transcript),
            online=self._online,
            busy=self.busy,
            typing=self._typing,
            placeholder=self.placeholder,
        )

    def welcome_message(self) -> Message:
        """Greeting shown above the transcript; it is not part of it."""

        return Message(id=0, sender=Sender.BOT, content=WELCOME_TEXT, timestamp=self._clock())

    def recall(self, entry_id: int) -> str:
        entry = self.history.get(entry_id)
        return entry.message if entry else ""

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def on_connectivity_change(self, online: bool) -> None:
        self._online = bool(online)
        if self.busy:
            self._logger.debug("Connectivity changed to %s during an exchange", self._online)

    def close(self) -> None:
        self._unsubscribe()

    def _append(self, sender: Sender, content: str, kind: MessageKind) -> Message:
        message = Message(
            id=next(self._ids),
            sender=sender,
            content=content,
            timestamp=self._clock(),
            kind=kind,
        )
        self._transcript.append(message)
        return message

    def _typing_seconds(self) -> float:
        min_ms, max_ms = self.typing_delay
        if max_ms == min_ms:
            return min_ms / 1000.0
        return (min_ms + self._rng.random() * (max_ms - min_ms)) / 1000.0

    async def _request_reply(self, text: str, sent_at: datetime) -> Message:
        try:
            pending = self.provider.respond(text, sent_at)
            if self.provider_timeout is not None:
                reply = await asyncio.wait_for(pending, timeout=self.provider_timeout)
            else:
                reply = await pending
        except asyncio.TimeoutError:
            self._logger.warning("Response provider timed out (limit: %s seconds)", self.provider_timeout)
            return self._append(Sender.BOT, ERROR_NOTICE, MessageKind.ERROR)
        except Exception as exc:
            self._logger.warning("Response provider failed: %s", exc, exc_info=True)
            return self._append(Sender.BOT, ERROR_NOTICE, MessageKind.ERROR)

        if reply is None or not str(reply).strip():
            return self._append(Sender.BOT, FALLBACK_REPLY, MessageKind.FALLBACK)
        return self._append(Sender.BOT, str(reply), MessageKind.REPLY)

    async def _complete(self, text: str, sent_at: datetime) -> Message:
        try:
            await self._sleep(self._typing_seconds())
            self._typing = False
            return await self._request_reply(text, sent_at)
        finally:
            self._typing = False
            self._phase = SessionPhase.IDLE
            self._inflight = None

    async def exchange(self, text: Optional[str]) -> AsyncIterator[SessionEvent]:
        message = (text or "").strip()
        if not message:
            return
        if self.busy:
            self._logger.debug("Ignoring submission while a reply is pending")
            return
        if not self._online:
            notice = self._append(Sender.BOT, NO_INTERNET_NOTICE, MessageKind.NOTICE)
            yield SessionEvent("notice", notice)
            return

        self._phase = SessionPhase.AWAITING_REPLY
        user_message = self._append(Sender.USER, message, MessageKind.USER)
        entry = self.history.add(message)
        self._typing = True
        inflight = asyncio.ensure_future(self._complete(message, user_message.timestamp))
        self._inflight = inflight

        yield SessionEvent("user", user_message)
        yield SessionEvent("history", entry=entry)
        yield SessionEvent("typing")
        # Shielded: the reply still lands if the caller is cancelled or walks away.
        reply = await asyncio.shield(inflight)
        yield SessionEvent("reply", reply)
        yield SessionEvent("idle")

    async def drain(self) -> None:
        """Wait for an exchange whose listener went away to settle."""

        inflight = self._inflight
        if inflight is not None:
            await asyncio.shield(inflight)

    async def submit(self, text: Optional[str]) -> List[Message]:
        """Process ``text`` to completion and return the messages it appended."""

        appended: List[Message] = []
        async for event in self.exchange(text):
            if event.message is not None:
                appended.append(event.message)
        return appended


__all__ = [
    "ChatSession",
    "ERROR_NOTICE",
    "FALLBACK_REPLY",
    "NO_INTERNET_NOTICE",
    "PLACEHOLDER_BUSY",
    "PLACEHOLDER_OFFLINE",
    "PLACEHOLDER_READY",
    "WELCOME_TEXT",
]
