"""Observer registry for user activity signals (pointer, keyboard, scroll, touch)."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable

import structlog

log = structlog.get_logger(__name__)

ActivityCallback = Callable[[str], None]


class ActivitySignals:
    """The host UI emits activity here; the session monitor listens."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[ActivityCallback]] = defaultdict(list)

    def subscribe(self, signal: str, callback: ActivityCallback) -> Callable[[], None]:
        self._listeners[signal].append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(signal, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def emit(self, signal: str) -> None:
        for callback in list(self._listeners.get(signal, ())):
            try:
                callback(signal)
            except Exception as exc:
                log.error("activity_listener_failed", signal=signal, error=str(exc))

    def listener_count(self, signal: str | None = None) -> int:
        if signal is not None:
            return len(self._listeners.get(signal, ()))
        return sum(len(v) for v in self._listeners.values())
