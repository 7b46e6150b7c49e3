"""Timers owned by a session, scheduled on the asyncio event loop."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        return _Repeating(self, interval, callback)


class LoopScheduler(Scheduler):
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _Repeating:
    def __init__(self, scheduler: Scheduler, interval: float, callback: Callback):
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle = scheduler.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # re-arm first so a failing callback does not stop the ticker
        self._handle = self._scheduler.call_later(self._interval, self._fire)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class TimerGroup:
    """
    Named timers that are torn down together.

    Scheduling under a name that is already taken cancels the previous timer.
    Once closed, the group refuses new timers, so a callback racing with
    teardown cannot re-arm anything.
    """

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handles: Dict[str, TimerHandle] = {}
        self.closed = False

    def once(self, name: str, delay: float, callback: Callback) -> bool:
        if self.closed:
            logger.debug("Timer group closed; not scheduling %s", name)
            return False
        self.cancel(name)

        def fire() -> None:
            self._handles.pop(name, None)
            callback()

        self._handles[name] = self._scheduler.call_later(delay, fire)
        return True

    def every(self, name: str, interval: float, callback: Callback) -> bool:
        if self.closed:
            logger.debug("Timer group closed; not scheduling %s", name)
            return False
        self.cancel(name)
        self._handles[name] = self._scheduler.call_every(interval, callback)
        return True

    def cancel(self, name: str) -> None:
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()

    def active(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def close(self) -> None:
        self.closed = True
        for name in list(self._handles):
            self.cancel(name)
