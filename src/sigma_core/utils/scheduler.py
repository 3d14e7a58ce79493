"""
utils/scheduler.py — Timer abstraction over the event loop.

Everything time-driven in sigma_core (TTL sweep, session warning/expiry,
submission cooldowns) goes through a Scheduler so tests can swap in a
simulated clock instead of sleeping.

Usage:
    scheduler = AsyncioScheduler()
    handle = scheduler.after(60, lambda: print("one minute later"))
    handle.cancel()

    sweep = scheduler.every(300, cache.cleanup)

Callbacks may be plain functions or return an awaitable; awaitables are
run as tasks on the loop.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)

TimerCallback = Callable[[], Any]


class TimerHandle:
    """Cancel token for a pending (or repeating) timer."""

    def __init__(self, cancel: Callable[[], None] | None = None) -> None:
        self._cancel = cancel
        self._cancelled = False

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._cancel is not None:
            self._cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class Scheduler(ABC):
    """Source of time and delayed callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""
        ...

    @abstractmethod
    def after(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run *callback* once, *delay* seconds from now."""
        ...

    @abstractmethod
    def every(self, interval: float, callback: TimerCallback) -> TimerHandle:
        """Run *callback* every *interval* seconds until cancelled."""
        ...


class AsyncioScheduler(Scheduler):
    """Scheduler backed by ``loop.call_later`` on the running loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def now(self) -> float:
        return time.monotonic()

    def after(self, delay: float, callback: TimerCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        timer = loop.call_later(max(0.0, delay), self._run, callback)
        return TimerHandle(timer.cancel)

    def every(self, interval: float, callback: TimerCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        current: list[asyncio.TimerHandle] = []

        def tick() -> None:
            current[0] = loop.call_later(interval, tick)
            self._run(callback)

        current.append(loop.call_later(interval, tick))
        return TimerHandle(lambda: current[0].cancel())

    def _run(self, callback: TimerCallback) -> None:
        try:
            result = callback()
        except Exception as exc:
            log.error("timer_callback_failed", error=str(exc), exc_info=True)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("timer_task_failed", error=str(task.exception()))
