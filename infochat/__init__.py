"""Session core behind the infographic chat interface."""

from . import config as _config
from .connectivity import ConnectivityMonitor, probe_connectivity
from .history import HistoryManager, make_preview
from .models import HistoryEntry, Message, MessageKind, Sender, SessionEvent, SessionPhase, SessionState
from .provider import PlaceholderProvider, ProviderError, ResponseProvider, WebhookProvider, make_provider
from .session import ChatSession
from .storage import FsKeyValueStore, HistoryStore, InMemoryKeyValueStore, KeyValueStore, make_store
from .ui_utils import safe_component

reload_from_environment = _config.reload_from_environment

__all__ = [
    "ChatSession",
    "ConnectivityMonitor",
    "FsKeyValueStore",
    "HistoryEntry",
    "HistoryManager",
    "HistoryStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "Message",
    "MessageKind",
    "PlaceholderProvider",
    "ProviderError",
    "ResponseProvider",
    "Sender",
    "SessionEvent",
    "SessionPhase",
    "SessionState",
    "WebhookProvider",
    "make_preview",
    "make_provider",
    "make_store",
    "probe_connectivity",
    "reload_from_environment",
    "safe_component",
]


def __getattr__(name: str):
    if hasattr(_config, name):
        return getattr(_config, name)
    raise AttributeError(name)
