from __future__ import annotations

import logging
from typing import Callable, List, Optional

import requests

Observer = Callable[[bool], None]


class ConnectivityMonitor:
    """Two-state online/offline tracker that notifies observers on transitions."""

    def __init__(self, initial_online: bool = True, *, logger: Optional[logging.Logger] = None) -> None:
        self._online = bool(initial_online)
        self._observers: List[Observer] = []
        self._logger = logger or logging.getLogger(__name__)

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` and return a callable that removes it again."""

        self._observers.append(observer)

        def _unsubscribe() -> None:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

        return _unsubscribe

    def set_online(self, online: bool) -> None:
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        self._logger.info("Connectivity changed: %s", "online" if online else "offline")
        for observer in list(self._observers):
            try:
                observer(online)
            except Exception:
                self._logger.exception("Connectivity observer %r failed", observer)


def probe_connectivity(
    url: str,
    *,
    timeout: float = 5.0,
    session: Optional[requests.Session] = None,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Return ``True`` when ``url`` answers at all, ``False`` on transport failure."""

    log = logger or logging.getLogger(__name__)
    client = session or requests
    try:
        client.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        log.info("Connectivity probe to %s failed: %s", url, exc)
        return False
    return True


__all__ = ["ConnectivityMonitor", "Observer", "probe_connectivity"]
