"""
Batch subprocess output into bounded, renderable line buffers.

Claude can print hundreds of lines a second or one line a minute. Rendering
per line wastes CPU in the first case; rendering per interval starves the
second. OutputBatcher flushes on whichever comes first:

- batch_lines pending lines (flush immediately, cancel the timer), or
- batch_ms since the first unflushed line (one timer, armed only while
  the buffer is non-empty).

Published lines are capped at max_lines, dropping the oldest.

Run lifecycle is a transitions state machine:

    idle --begin--> running --finish--> exited
                        \\--fail--> errored --halt--> exited

fail while idle only records the error; the first data still begins the run.
finish, fail and halt flush pending lines *before* changing run fields, so
trailing output is never lost when the process ends.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional, Union

from transitions import Machine

from ralphdash.lib.ansi import strip_ansi
from ralphdash.lib.constants import DEFAULT_BATCH_LINES, DEFAULT_BATCH_MS, DEFAULT_MAX_LINES
from ralphdash.lib.models import EMPTY_OUTPUT, OutputState
from ralphdash.lib.scheduler import Scheduler, TimerHandle
from ralphdash.output.events import (
    DataEvent,
    ErrorEvent,
    ExitEvent,
    OutputEvent,
    UnknownEventError,
    decode_event,
)

logger = logging.getLogger(__name__)

OutputCallback = Callable[[OutputState], None]

STATES = ["idle", "running", "exited", "errored"]

TRANSITIONS = [
    # First data or set_running(True)
    {"trigger": "begin", "source": ["idle", "exited", "errored"], "dest": "running",
     "after": "_mark_running"},

    # Exit event ends the run
    {"trigger": "finish", "source": "*", "dest": "exited",
     "before": "flush", "after": "_record_exit"},

    # Error before any data: record it, the first data event still begins the run
    {"trigger": "fail", "source": "idle", "dest": None,
     "before": "flush", "after": "_record_error"},

    # Error event is advisory: run fields other than error are untouched
    {"trigger": "fail", "source": "*", "dest": "errored",
     "before": "flush", "after": "_record_error"},

    # set_running(False)
    {"trigger": "halt", "source": ["running", "errored"], "dest": "exited",
     "before": "flush", "after": "_mark_stopped"},

    # clear()
    {"trigger": "reset", "source": "*", "dest": "idle", "after": "_reset_output"},
]


@dataclass
class BatcherState:
    """Lines received but not yet published.

    lines and stripped_lines always have the same length.
    """
    lines: list[str] = field(default_factory=list)
    stripped_lines: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)

    def push(self, line: str) -> None:
        self.lines.append(line)
        self.stripped_lines.append(strip_ansi(line))

    def flush(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Hand over everything pending and empty the buffer."""
        lines, stripped = tuple(self.lines), tuple(self.stripped_lines)
        self.clear()
        return lines, stripped

    def clear(self) -> None:
        self.lines = []
        self.stripped_lines = []


class OutputBatcher:
    """Owns the OutputState of one subprocess run."""

    def __init__(
        self,
        scheduler: Scheduler,
        max_lines: int = DEFAULT_MAX_LINES,
        batch_lines: int = DEFAULT_BATCH_LINES,
        batch_ms: int = DEFAULT_BATCH_MS,
    ) -> None:
        if max_lines < 1 or batch_lines < 1:
            raise ValueError("max_lines and batch_lines must be at least 1")

        self.scheduler = scheduler
        self.max_lines = max_lines
        self.batch_lines = batch_lines
        self.batch_ms = batch_ms

        self.buffer = BatcherState()
        self.output: OutputState = EMPTY_OUTPUT
        self._timer: Optional[TimerHandle] = None
        self._queue: deque = deque()
        self._draining = False
        self._subscribers: list[OutputCallback] = []

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            model_attribute="phase",
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            ignore_invalid_triggers=True,  # e.g. set_running(True) while running
        )

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def subscribe(self, callback: OutputCallback) -> None:
        self._subscribers.append(callback)

    # Event intake

    def push_event(self, event: Union[OutputEvent, dict]) -> None:
        self._queue.append(event)
        self._drain()

    def push_events(self, events: Iterable[Union[OutputEvent, dict]]) -> None:
        self._queue.extend(events)
        self._drain()

    def _drain(self) -> None:
        # Events pushed from a subscriber callback are queued behind the
        # current one instead of being applied out of order.
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        finally:
            self._draining = False

    def _apply(self, event: Union[OutputEvent, dict]) -> None:
        if isinstance(event, dict):
            try:
                event = decode_event(event)
            except UnknownEventError as e:
                logger.warning(f"[batcher] dropping event: {e}")
                return

        if isinstance(event, DataEvent):
            self._receive(event.text)
        elif isinstance(event, ExitEvent):
            self.finish(exit_code=event.code)
        elif isinstance(event, ErrorEvent):
            self.fail(message=event.message)

    def _receive(self, text: str) -> None:
        fragments = [line for line in text.split("\n") if line]
        if not fragments:
            return
        if self.phase == "idle":
            self.begin()
        for line in fragments:
            self.buffer.push(line)
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if len(self.buffer) >= self.batch_lines:
            self.flush()
            return
        if self._timer is None:
            self._timer = self.scheduler.call_later(self.batch_ms / 1000, self._on_flush_timer)

    def _on_flush_timer(self) -> None:
        self._timer = None
        self.flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # Publishing

    def flush(self, event=None) -> bool:
        """Publish pending lines. Returns False if there was nothing to publish."""
        self._cancel_timer()
        lines, stripped = self.buffer.flush()
        if not lines:
            return False

        self._publish(replace(
            self.output,
            lines=(self.output.lines + lines)[-self.max_lines:],
            stripped_lines=(self.output.stripped_lines + stripped)[-self.max_lines:],
        ))
        return True

    def _publish(self, output: OutputState) -> None:
        self.output = output
        for callback in self._subscribers:
            callback(output)

    # Transition callbacks

    def _mark_running(self, event) -> None:
        if event.transition.source == "idle":
            # Keeps an error reported before the first line
            self._publish(replace(self.output, is_running=True))
        else:
            self._publish(replace(self.output, is_running=True, exit_code=None, error=None))

    def _record_exit(self, event) -> None:
        self._publish(replace(self.output, is_running=False, exit_code=event.kwargs.get("exit_code")))

    def _record_error(self, event) -> None:
        self._publish(replace(self.output, error=event.kwargs.get("message")))

    def _mark_stopped(self, event) -> None:
        self._publish(replace(self.output, is_running=False))

    def _reset_output(self, event) -> None:
        self._publish(EMPTY_OUTPUT)

    # Caller controls

    def set_running(self, running: bool) -> None:
        if running:
            self.begin()
        else:
            self.halt()

    def clear(self) -> None:
        """Drop pending and published output and return to idle."""
        self._cancel_timer()
        self.buffer.clear()
        self.reset()

    def close(self) -> None:
        """Teardown: cancel the flush timer. Pending lines are not published."""
        self._cancel_timer()
