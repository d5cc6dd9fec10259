from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Tuple


def safe_component(
    factory: Callable[..., Any],
    *args: Any,
    optional_keys: Tuple[str, ...] = ("type",),
    **kwargs: Any,
) -> Any:
    """Build a Gradio component, dropping optional kwargs the installed version rejects."""

    attempt_kwargs = dict(kwargs)
    while True:
        try:
            return factory(*args, **attempt_kwargs)
        except TypeError as exc:
            message = str(exc)
            dropped = next(
                (key for key in optional_keys if key in attempt_kwargs and f"'{key}'" in message),
                None,
            )
            if dropped is None:
                raise
            attempt_kwargs.pop(dropped)


def format_time(value: Any) -> str:
    """Render a datetime (or ISO-8601 string) as a local ``hh:mm AM`` clock time."""

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return ""
    if not isinstance(value, datetime):
        return ""
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%I:%M %p")


__all__ = ["format_time", "safe_component"]
