"""
Timer scheduling for dashboard components.

Components never sleep or start threads. They ask a Scheduler for one-shot
and repeating callbacks and keep the returned handle so teardown can cancel
it. The running dashboard uses TextualScheduler (the app's own timers on the
asyncio loop); tests drive a manual clock instead.
"""

import asyncio
from typing import Callable, Protocol

Callback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run callback once after delay seconds."""
        ...

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        """Run callback every interval seconds until cancelled."""
        ...

    def call_soon_threadsafe(self, callback: Callback) -> None:
        """Hand a callback from another thread to the event loop."""
        ...


class _TextualTimerHandle:
    """Adapts textual.timer.Timer to the TimerHandle protocol."""

    def __init__(self, timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class TextualScheduler:
    """Scheduler backed by a running Textual app.

    Must be created from inside the app (e.g. on_mount) so the asyncio loop
    is available for thread handoff.
    """

    def __init__(self, app) -> None:
        self.app = app
        self._loop = asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        return _TextualTimerHandle(self.app.set_timer(delay, callback))

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        return _TextualTimerHandle(self.app.set_interval(interval, callback))

    def call_soon_threadsafe(self, callback: Callback) -> None:
        self._loop.call_soon_threadsafe(callback)
