#!/usr/bin/env python3

# Copyright (c) 2025 James Baker VA7ODR
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software
# and associated documentation files (the “Software”), to deal in the Software without
# restriction, including without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to permit persons to whom the
# Software is furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all copies or
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED “AS IS”, WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL
# THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR
# OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE,
# ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR
# OTHER DEALINGS IN THE SOFTWARE.

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import gradio as gr

import infochat.config as infochat_config
from infochat.connectivity import ConnectivityMonitor, probe_connectivity
from infochat.history import HistoryManager
from infochat.provider import ResponseProvider, make_provider
from infochat.session import ChatSession
from infochat.storage import HistoryStore, KeyValueStore, make_store
from infochat.ui_utils import format_time, safe_component


TYPING_MARKER = '<span class="typing-indicator">● ● ●</span>'
EMPTY_HISTORY_LABEL = "No chat history yet. Start a conversation!"


@dataclass
class AppDependencies:
    """Collaborators shared by every visitor; each browser tab gets its own ChatSession."""

    store: KeyValueStore
    history: HistoryManager
    connectivity: ConnectivityMonitor
    provider: ResponseProvider
    typing_delay: Optional[Tuple[int, int]] = None
    provider_timeout: Optional[float] = None
    sessions: Dict[str, ChatSession] = field(default_factory=dict)

    def open_session(self) -> str:
        key = uuid.uuid4().hex
        self.sessions[key] = ChatSession(
            self.history,
            self.connectivity,
            self.provider,
            typing_delay=self.typing_delay,
            provider_timeout=self.provider_timeout,
        )
        return key

    def session_for(self, key: Optional[str]) -> Tuple[str, ChatSession]:
        if key is None or key not in self.sessions:
            key = self.open_session()
        return key, self.sessions[key]

    def release(self, key: Optional[str]) -> None:
        session = self.sessions.pop(key, None) if key else None
        if session is not None:
            session.close()

    def close(self) -> None:
        for key in list(self.sessions):
            self.release(key)


_dependencies: Optional[AppDependencies] = None


def build_dependencies(
    *,
    storage: str | None = None,
    base_dir: Optional[Path] = None,
    provider: Optional[ResponseProvider] = None,
    online: Optional[bool] = None,
    typing_delay: Optional[Tuple[int, int]] = None,
) -> AppDependencies:
    infochat_config.reload_from_environment()
    store = make_store(storage=storage, base_dir=base_dir)
    history = HistoryManager(HistoryStore(store))
    if online is None:
        online = probe_connectivity(infochat_config.PROBE_URL)
    connectivity = ConnectivityMonitor(initial_online=online)
    provider_instance = provider or make_provider()
    logging.getLogger(__name__).info(
        "Chat app ready (%s, %d history entries, %s)",
        type(provider_instance).__name__,
        len(history),
        "online" if online else "offline",
    )
    return AppDependencies(
        store=store,
        history=history,
        connectivity=connectivity,
        provider=provider_instance,
        typing_delay=typing_delay,
        provider_timeout=infochat_config.PROVIDER_TIMEOUT,
    )


def configure_dependencies(deps: AppDependencies) -> AppDependencies:
    global _dependencies
    if _dependencies is not None and _dependencies is not deps:
        _dependencies.close()
    _dependencies = deps
    return deps


def get_dependencies() -> AppDependencies:
    if _dependencies is None:
        return configure_dependencies(build_dependencies())
    return _dependencies


def _release_session(key: Optional[str]) -> None:
    if _dependencies is not None:
        _dependencies.release(key)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def _chat_messages(session: ChatSession) -> List[Dict[str, Any]]:
    messages = [session.welcome_message().to_chat_message()]
    messages.extend(message.to_chat_message() for message in session.transcript)
    if session.typing:
        messages.append({"role": "assistant", "content": TYPING_MARKER})
    return messages


def _history_choices() -> List[Tuple[str, str]]:
    choices = []
    for entry in get_dependencies().history.all():
        stamp = format_time(entry.timestamp)
        label = f"{entry.preview} · {stamp}" if stamp else entry.preview
        choices.append((label, str(entry.id)))
    return choices


def _history_label() -> str:
    count = len(get_dependencies().history)
    if not count:
        return EMPTY_HISTORY_LABEL
    return f"{count} saved message{'s' if count != 1 else ''}"


def _status_text(session: ChatSession) -> str:
    if session.online:
        return "🟢 Online"
    return "🔴 No internet connection"


def _history_update() -> Any:
    return gr.update(choices=_history_choices(), value=None, label=_history_label())


def _render(key: str, session: ChatSession, *, clear_input: bool) -> Tuple[Any, ...]:
    """Outputs in the order ``session_key, chat, user_box, send_btn, history, status``."""

    box_kwargs: Dict[str, Any] = {
        "interactive": session.input_enabled,
        "placeholder": session.placeholder,
    }
    if clear_input:
        box_kwargs["value"] = ""
    return (
        key,
        _chat_messages(session),
        gr.update(**box_kwargs),
        gr.update(interactive=session.input_enabled),
        _history_update(),
        _status_text(session),
    )


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------

async def on_user(message: str, session_key: Optional[str] = None):
    key, session = get_dependencies().session_for(session_key)
    accepted = False
    emitted = False
    async for event in session.exchange(message):
        if event.event == "user":
            accepted = True
        if event.event == "history":
            continue
        emitted = True
        yield _render(key, session, clear_input=accepted)
    if not emitted:
        yield _render(key, session, clear_input=False)


def on_recall(entry_id: Optional[str], session_key: Optional[str] = None) -> Any:
    if not entry_id:
        return gr.update()
    deps = get_dependencies()
    try:
        wanted = int(entry_id)
    except ValueError:
        return gr.update()
    session = deps.sessions.get(session_key) if session_key else None
    if session is not None:
        text = session.recall(wanted)
    else:
        entry = deps.history.get(wanted)
        text = entry.message if entry else ""
    if not text:
        return gr.update()
    return gr.update(value=text)


def on_clear_request() -> Any:
    return gr.update(visible=True)


def on_clear_confirm() -> Tuple[Any, Any]:
    get_dependencies().history.clear()
    return _history_update(), gr.update(visible=False)


def on_clear_cancel() -> Any:
    return gr.update(visible=False)


def on_check_connection(session_key: Optional[str] = None) -> Tuple[Any, ...]:
    deps = get_dependencies()
    key, session = deps.session_for(session_key)
    deps.connectivity.set_online(probe_connectivity(infochat_config.PROBE_URL))
    return _render(key, session, clear_input=False)


def on_load() -> Tuple[Any, ...]:
    """Start a fresh chat for a newly connected browser tab."""

    key, session = get_dependencies().session_for(None)
    return _render(key, session, clear_input=False)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def build_demo() -> gr.Blocks:
    with gr.Blocks(title="Infographic Chat") as demo:
        gr.Markdown("# Infographic Chat")

        with gr.Row():
            with gr.Column(scale=1, min_width=240):
                history_selector = gr.Dropdown(
                    label=EMPTY_HISTORY_LABEL,
                    choices=[],
                    value=None,
                    interactive=True,
                )
                clear_btn = gr.Button("🗑️ Clear history", variant="secondary")
                with gr.Row(visible=False) as confirm_row:
                    gr.Markdown("Clear all chat history? This cannot be undone.")
                    confirm_btn = gr.Button("Clear", variant="stop", scale=0)
                    cancel_btn = gr.Button("Cancel", scale=0)
                status = gr.Markdown()
                check_btn = gr.Button("🔄 Check connection", variant="secondary")
            with gr.Column(scale=3):
                chat = safe_component(
                    gr.Chatbot,
                    value=[],
                    height=480,
                    type="messages",
                    optional_keys=("type",),
                    elem_id="infochat-chat",
                )
                user_box = gr.Textbox(
                    label="Message",
                    placeholder="Describe the infographic you want to create...",
                    lines=2,
                    max_lines=6,
                )
                send_btn = gr.Button("Send", variant="primary")

        session_key = safe_component(
            gr.State,
            value=None,
            delete_callback=_release_session,
            optional_keys=("delete_callback",),
        )
        outputs = [session_key, chat, user_box, send_btn, history_selector, status]

        demo.load(on_load, inputs=None, outputs=outputs)
        send_btn.click(on_user, inputs=[user_box, session_key], outputs=outputs)
        user_box.submit(on_user, inputs=[user_box, session_key], outputs=outputs)
        history_selector.change(on_recall, inputs=[history_selector, session_key], outputs=user_box)
        clear_btn.click(on_clear_request, inputs=None, outputs=confirm_row)
        confirm_btn.click(on_clear_confirm, inputs=None, outputs=[history_selector, confirm_row])
        cancel_btn.click(on_clear_cancel, inputs=None, outputs=confirm_row)
        check_btn.click(on_check_connection, inputs=session_key, outputs=outputs)

    return demo


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, infochat_config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_dependencies(build_dependencies())
    build_demo().launch(server_name="0.0.0.0", server_port=7860, show_error=True)
