"""
Timer scheduling on the running event loop.

Components never call ``asyncio.sleep`` for their presentation timers; they ask
a ``Scheduler`` for a cancellable one-shot callback so that the decay and
notification windows can be driven by a fake clock under test.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """One-shot timers plus a wall clock."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def now(self) -> datetime:
        """Current UTC time."""

    def deadline(self, delay: float) -> datetime:
        return self.now() + timedelta(seconds=delay)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
