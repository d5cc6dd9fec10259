"""Durable key-value storage and the history persistence adapter.

The history collection lives under a single namespaced key and is rewritten
wholesale on every change.  ``HistoryStore`` never lets a storage problem
escape to its caller: a missing value loads as an empty history, corrupt data
is moved aside for inspection and also loads as empty, and failed writes are
logged and dropped.  History is advisory, so losing it is not fatal.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .models import HistoryEntry

SCHEMA_VERSION = 1


def _sanitize_key(key: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", key) or "default"


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent), encoding="utf-8") as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = tmp.name
    os.replace(tmp_path, path)  # atomic on same filesystem


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def quarantine(self, key: str) -> Optional[str]:
        """Move the value under ``key`` aside and return the key it now lives at."""

        value = self.get(key)
        if value is None:
            return None
        target = f"{key}.corrupt-{_utc_stamp()}"
        self.set(target, value)
        self.delete(key)
        return target


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._values)


class FsKeyValueStore(KeyValueStore):
    """One UTF-8 file per key under ``base_dir``."""

    def __init__(self, base_dir: Optional[Path] = None, *, logger: Optional[logging.Logger] = None) -> None:
        resolved = base_dir or config.DATA_DIR
        self.base_dir = Path(resolved).expanduser().resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"{_sanitize_key(key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        with self._lock:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        with self._lock:
            _atomic_write(self.path_for(key), value)

    def delete(self, key: str) -> None:
        with self._lock:
            self.path_for(key).unlink(missing_ok=True)

    def quarantine(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        quarantined = path.with_suffix(path.suffix + f".corrupt-{_utc_stamp()}")
        with self._lock:
            if not path.exists():
                return None
            shutil.move(str(path), str(quarantined))
        return quarantined.name


def make_store(
    *,
    storage: Optional[str] = None,
    base_dir: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
) -> KeyValueStore:
    mode = (storage or config.STORAGE).lower()
    if mode == "memory":
        return InMemoryKeyValueStore()
    # default to filesystem storage
    return FsKeyValueStore(base_dir, logger=logger)


class HistoryStore:
    """Load and save the bounded history collection under one storage key."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: Optional[str] = None,
        limit: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.key = key or config.STORAGE_KEY
        self.limit = limit if limit is not None else config.HISTORY_LIMIT
        if self.limit <= 0:
            raise ValueError("history limit must be positive")
        self._logger = logger or logging.getLogger(__name__)

    def _quarantine(self, exc: Exception) -> None:
        try:
            moved_to = self.store.quarantine(self.key)
            self._logger.warning("Quarantined corrupt history under %s: %s", moved_to, exc)
        except OSError as move_exc:
            self._logger.error("Failed to quarantine history %s: %s", self.key, move_exc)

    def _records(self, payload: Any) -> Optional[List[Any]]:
        # Bare lists are the layout written before the schema was versioned.
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            return None
        version = payload.get("version")
        if version != SCHEMA_VERSION:
            self._logger.warning("Ignoring history with unsupported schema version %r", version)
            return []
        entries = payload.get("entries")
        return entries if isinstance(entries, list) else None

    def load(self) -> List[HistoryEntry]:
        try:
            raw = self.store.get(self.key)
        except UnicodeDecodeError as exc:
            self._quarantine(exc)
            return []
        except OSError as exc:
            self._logger.warning("History storage unavailable: %s", exc)
            return []
        if raw is None:
            return []
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, RecursionError) as exc:
            self._quarantine(exc)
            return []

        records = self._records(payload)
        if records is None:
            self._quarantine(ValueError("unexpected history layout"))
            return []

        entries: List[HistoryEntry] = []
        for record in records:
            try:
                entries.append(HistoryEntry.from_dict(record))
            except ValueError as exc:
                self._logger.warning("Skipping malformed history record: %s", exc)
        return entries[: self.limit]

    def save(self, entries: Iterable[HistoryEntry]) -> None:
        payload = {
            "version": SCHEMA_VERSION,
            "entries": [entry.to_dict() for entry in entries],
        }
        try:
            self.store.set(self.key, json.dumps(payload, ensure_ascii=False, indent=2))
        except (OSError, TypeError, ValueError) as exc:
            self._logger.warning("Failed to persist history: %s", exc)

    def clear(self) -> None:
        self.save([])


__all__ = [
    "FsKeyValueStore",
    "HistoryStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SCHEMA_VERSION",
    "make_store",
]
