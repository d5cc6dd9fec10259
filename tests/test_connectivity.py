from __future__ import annotations

from typing import Any, Dict, List

import requests

from infochat.connectivity import ConnectivityMonitor, probe_connectivity


class _StubSession:
    def __init__(self, error: Exception | None = None, status: int = 200) -> None:
        self.error = error
        self.status = status
        self.calls: List[Dict[str, Any]] = []

    def head(self, url: str, **kwargs: Any):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return type("_Response", (), {"status_code": self.status})()


def test_initial_state_is_reported() -> None:
    assert ConnectivityMonitor(initial_online=True).online is True
    assert ConnectivityMonitor(initial_online=False).online is False


def test_observers_notified_only_on_transitions() -> None:
    monitor = ConnectivityMonitor(initial_online=True)
    seen: List[bool] = []
    monitor.subscribe(seen.append)

    monitor.set_online(True)
    monitor.set_online(False)
    monitor.set_online(False)
    monitor.set_online(True)

    assert seen == [False, True]
    assert monitor.online is True


def test_observers_run_in_registration_order() -> None:
    monitor = ConnectivityMonitor()
    order: List[str] = []
    monitor.subscribe(lambda online: order.append("first"))
    monitor.subscribe(lambda online: order.append("second"))

    monitor.set_online(False)

    assert order == ["first", "second"]


def test_unsubscribe_stops_notifications() -> None:
    monitor = ConnectivityMonitor()
    seen: List[bool] = []
    unsubscribe = monitor.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    monitor.set_online(False)

    assert seen == []


def test_failing_observer_does_not_block_others() -> None:
    monitor = ConnectivityMonitor()
    seen: List[bool] = []

    def _boom(online: bool) -> None:
        raise RuntimeError("observer failure")

    monitor.subscribe(_boom)
    monitor.subscribe(seen.append)

    monitor.set_online(False)

    assert seen == [False]


def test_probe_reports_online_for_any_response() -> None:
    session = _StubSession(status=503)

    assert probe_connectivity("https://example.invalid", timeout=1.5, session=session) is True
    assert session.calls[0]["url"] == "https://example.invalid"
    assert session.calls[0]["timeout"] == 1.5


def test_probe_reports_offline_on_transport_error() -> None:
    session = _StubSession(error=requests.exceptions.ConnectionError("unreachable"))

    assert probe_connectivity("https://example.invalid", session=session) is False
