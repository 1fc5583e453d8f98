"""Tests for ralphdash.output.batcher."""

import logging

import pytest

from ralphdash.lib.models import EMPTY_OUTPUT
from ralphdash.output import DataEvent, ErrorEvent, ExitEvent, OutputBatcher


@pytest.fixture
def batcher(scheduler):
    return OutputBatcher(scheduler, max_lines=1000, batch_lines=50, batch_ms=100)


def _record(batcher):
    seen = []
    batcher.subscribe(seen.append)
    return seen


class TestBatching:
    """Count and timer flush triggers."""

    def test_ansi_line_published_raw_and_stripped(self, batcher, scheduler):
        """Raw lines keep escapes, stripped lines lose them."""
        batcher.push_event(DataEvent("\x1b[31mERROR\x1b[0m\n"))
        scheduler.advance(0.1)

        assert batcher.output.lines == ("\x1b[31mERROR\x1b[0m",)
        assert batcher.output.stripped_lines == ("ERROR",)

    def test_count_flush_is_immediate(self, batcher):
        """Reaching batch_lines flushes without waiting for the timer."""
        batcher.push_event(DataEvent("\n".join(f"line {i}" for i in range(50))))

        assert len(batcher.output.lines) == 50
        assert not batcher.timer_armed

    def test_below_count_waits_for_timer(self, batcher, scheduler):
        """Fewer than batch_lines are published after batch_ms."""
        seen = _record(batcher)
        batcher.push_event(DataEvent("only line"))
        assert batcher.output.lines == ()
        assert batcher.timer_armed

        scheduler.advance(0.099)
        assert batcher.output.lines == ()

        scheduler.advance(0.001)
        assert batcher.output.lines == ("only line",)
        assert not batcher.timer_armed
        assert seen[-1].lines == ("only line",)

    def test_timer_not_rearmed_by_later_lines(self, batcher, scheduler):
        """The window starts at the first unflushed line."""
        batcher.push_event(DataEvent("a"))
        scheduler.advance(0.05)
        batcher.push_event(DataEvent("b"))
        scheduler.advance(0.05)

        assert batcher.output.lines == ("a", "b")
        assert len(scheduler.timers) == 1

    def test_count_flush_cancels_timer(self, batcher, scheduler):
        """A count flush cancels the pending timer."""
        batcher.push_event(DataEvent("first"))
        timer = scheduler.timers[0]
        batcher.push_event(DataEvent("\n".join(["x"] * 49)))

        assert timer.cancelled
        assert len(batcher.output.lines) == 50

    def test_empty_fragments_dropped(self, batcher, scheduler):
        """Blank fragments between newlines are not lines."""
        batcher.push_event(DataEvent("a\n\nb\n"))
        scheduler.advance(0.1)
        assert batcher.output.lines == ("a", "b")

    def test_blank_data_starts_nothing(self, batcher):
        """Data with no lines does not begin a run."""
        seen = _record(batcher)
        batcher.push_event(DataEvent("\n\n"))
        assert seen == []
        assert batcher.phase == "idle"
        assert not batcher.timer_armed


class TestBounds:
    """Published lines are capped at max_lines."""

    def test_oldest_lines_evicted(self, scheduler):
        """Past max_lines the oldest lines go first, in both buffers."""
        batcher = OutputBatcher(scheduler, max_lines=5, batch_lines=1)
        for i in range(8):
            batcher.push_event(DataEvent(f"\x1b[1m{i}\x1b[0m"))

        assert batcher.output.stripped_lines == ("3", "4", "5", "6", "7")
        assert len(batcher.output.lines) == len(batcher.output.stripped_lines)

    def test_single_large_batch_truncated(self, scheduler):
        """One flush larger than max_lines keeps only the tail."""
        batcher = OutputBatcher(scheduler, max_lines=10, batch_lines=50)
        batcher.push_event(DataEvent("\n".join(str(i) for i in range(200))))
        assert batcher.output.lines == tuple(str(i) for i in range(190, 200))

    @pytest.mark.parametrize("kwargs", [{"max_lines": 0}, {"batch_lines": 0}])
    def test_limits_must_be_positive(self, scheduler, kwargs):
        """Zero limits are rejected."""
        with pytest.raises(ValueError):
            OutputBatcher(scheduler, **kwargs)


class TestLifecycle:
    """Run state transitions."""

    def test_first_data_starts_run(self, batcher):
        """The first line marks the run as running."""
        seen = _record(batcher)
        batcher.push_event(DataEvent("hello"))
        assert batcher.phase == "running"
        assert batcher.output.is_running
        assert seen[0].is_running

    def test_exit_flushes_pending_lines_first(self, batcher, scheduler):
        """Pending lines are published before the run is marked exited."""
        seen = _record(batcher)
        batcher.push_event(DataEvent("one\ntwo\nthree"))
        batcher.push_event(ExitEvent(code=0))

        assert batcher.output.lines == ("one", "two", "three")
        assert batcher.output.exit_code == 0
        assert not batcher.output.is_running
        assert batcher.phase == "exited"
        assert scheduler.pending == []

        # Lines were published while the run was still marked running
        flushed = [s for s in seen if s.lines]
        assert flushed[0].is_running
        assert flushed[0].exit_code is None

    def test_exit_with_failure_code(self, batcher):
        """A non-zero exit code is recorded."""
        batcher.push_event(DataEvent("boom"))
        batcher.push_event(ExitEvent(code=2))
        assert batcher.output.exit_code == 2

    def test_error_is_advisory(self, batcher, scheduler):
        """An error flushes and records a message but keeps the run going."""
        batcher.push_event(DataEvent("partial"))
        batcher.push_event(ErrorEvent("rate limited"))

        assert batcher.output.error == "rate limited"
        assert batcher.output.lines == ("partial",)
        assert batcher.output.is_running
        assert batcher.output.exit_code is None
        assert batcher.phase == "errored"
        assert not batcher.timer_armed

    def test_error_before_first_data(self, batcher, scheduler):
        """An error before any output does not stop the first data from starting the run."""
        batcher.push_event(ErrorEvent("warning: rate limit near"))
        assert batcher.phase == "idle"
        assert batcher.output.error == "warning: rate limit near"

        batcher.push_event(DataEvent("hello"))
        scheduler.advance(0.1)

        assert batcher.phase == "running"
        assert batcher.output.is_running
        assert batcher.output.lines == ("hello",)
        assert batcher.output.error == "warning: rate limit near"

    def test_error_then_exit(self, batcher):
        """Exit after an error keeps the error message."""
        batcher.push_event(DataEvent("x"))
        batcher.push_event(ErrorEvent("oops"))
        batcher.push_event(ExitEvent(code=1))
        assert batcher.phase == "exited"
        assert batcher.output.error == "oops"
        assert batcher.output.exit_code == 1

    def test_data_after_exit_appends_without_restarting(self, batcher, scheduler):
        """Late lines after exit are shown but do not restart the run."""
        batcher.push_event(DataEvent("a"))
        batcher.push_event(ExitEvent(code=0))
        batcher.push_event(DataEvent("late"))
        scheduler.advance(0.1)

        assert batcher.output.lines == ("a", "late")
        assert not batcher.output.is_running
        assert batcher.phase == "exited"

    def test_set_running(self, batcher):
        """set_running toggles between running and exited."""
        batcher.set_running(True)
        assert batcher.output.is_running
        assert batcher.phase == "running"

        batcher.set_running(False)
        assert not batcher.output.is_running
        assert batcher.phase == "exited"

    def test_set_running_false_when_idle_is_noop(self, batcher):
        """Stopping a run that never started publishes nothing."""
        seen = _record(batcher)
        batcher.set_running(False)
        assert batcher.phase == "idle"
        assert seen == []

    def test_set_running_false_flushes(self, batcher):
        """Stopping flushes pending lines first."""
        batcher.push_event(DataEvent("pending"))
        batcher.set_running(False)
        assert batcher.output.lines == ("pending",)
        assert not batcher.timer_armed

    def test_restart_clears_exit_fields(self, batcher):
        """Restarting after exit clears the exit code but keeps lines."""
        batcher.push_event(DataEvent("a"))
        batcher.push_event(ExitEvent(code=3))
        batcher.set_running(True)
        assert batcher.output.is_running
        assert batcher.output.exit_code is None
        assert batcher.output.lines == ("a",)

    def test_clear_resets_everything(self, batcher, scheduler):
        """clear() drops all output and returns to idle."""
        batcher.push_event(DataEvent("a\nb"))
        scheduler.advance(0.1)
        batcher.push_event(DataEvent("pending"))

        batcher.clear()
        assert batcher.output == EMPTY_OUTPUT
        assert batcher.phase == "idle"
        assert not batcher.timer_armed

        scheduler.advance(1.0)
        assert batcher.output == EMPTY_OUTPUT

    def test_close_cancels_timer(self, batcher, scheduler):
        """close() leaves no timer behind."""
        batcher.push_event(DataEvent("a"))
        batcher.close()
        assert scheduler.pending == []


class TestEventIntake:
    """Wire dicts and ordering."""

    def test_dict_events(self, batcher):
        """Wire dicts are decoded and applied."""
        batcher.push_events([
            {"type": "data", "data": "from wire", "timestamp": "2026-01-01T00:00:00Z"},
            {"type": "exit", "exitCode": 0},
        ])
        assert batcher.output.lines == ("from wire",)
        assert batcher.output.exit_code == 0

    def test_unknown_dict_dropped(self, batcher, caplog):
        """Unknown event types are logged and skipped."""
        caplog.set_level(logging.WARNING)
        batcher.push_events([{"type": "progress"}, {"type": "data", "data": "kept"}])
        batcher.flush()
        assert batcher.output.lines == ("kept",)
        assert "dropping event" in caplog.text

    def test_reentrant_push_keeps_order(self, scheduler):
        """A subscriber pushing an event does not jump the queue."""
        batcher = OutputBatcher(scheduler, batch_lines=1)
        pushed = []

        def on_output(output):
            if output.lines == ("a",) and not pushed:
                pushed.append(True)
                batcher.push_event(DataEvent("c"))

        batcher.subscribe(on_output)
        batcher.push_events([DataEvent("a"), DataEvent("b")])

        assert batcher.output.lines == ("a", "b", "c")
