"""
ralphdash - live dashboard for a running ralph loop.

Textual host for the state components. Observes PRD files, the status
file and subprocess output; renders one DashboardSnapshot per update.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.reactive import reactive
from textual.widgets import Footer, Header, Static

from ralphdash.dashboard.render_state import DashboardRenderState, DashboardSnapshot, RenderMode
from ralphdash.lib.config import DashboardConfig
from ralphdash.lib.constants import STARTUP_EXIT_DELAY_SECONDS
from ralphdash.lib.scheduler import TextualScheduler
from ralphdash.output import OutputBatcher, OutputEvent
from ralphdash.state.locator import StatusFileLocator
from ralphdash.state.reconciler import StateReconciler
from ralphdash.state.status import StatusStreamReader
from ralphdash.state.watcher import DebouncedFileWatcher

logger = logging.getLogger(__name__)

CLOCK_INTERVAL_SECONDS = 1.0
OUTPUT_TAIL_LINES = 20
PROGRESS_BAR_WIDTH = 30


def format_duration(seconds: int) -> str:
    """Format seconds as human-readable duration."""
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    secs = seconds % 60
    if minutes < 60:
        return f"{minutes}m {secs}s"
    return f"{minutes // 60}h {minutes % 60}m"


def _bar(fraction: float, width: int = PROGRESS_BAR_WIDTH) -> str:
    filled = round(fraction * width)
    return "█" * filled + "░" * (width - filled)


def format_progress(snapshot: DashboardSnapshot) -> str:
    if not snapshot.has_data:
        return "[dim]No PRD data[/dim]"

    stats = snapshot.stats
    lines = [
        f"[bold]Stories[/bold] {_bar(stats.story_progress)} "
        f"{stats.completed_stories}/{stats.total_stories}",
        f"[bold]Criteria[/bold] {_bar(stats.criteria_progress)} "
        f"{stats.checked_criteria}/{stats.total_criteria}",
        f"[cyan]{stats.pending_stories} pending[/cyan]  [yellow]{stats.blocked_stories} blocked[/yellow]",
    ]
    return "\n".join(lines)


def format_story(snapshot: DashboardSnapshot) -> str:
    story = snapshot.stats.current_story
    if story is None:
        if snapshot.stats.next_story_id:
            return f"[bold]{escape(snapshot.stats.next_story_id)}[/bold] [dim](no story file)[/dim]"
        return "[dim]No current story[/dim]"

    lines = [f"[bold]{escape(story.id)}[/bold]: {escape(story.title)}"]
    for criterion in story.acceptance_criteria:
        mark = "[green]✓[/green]" if criterion.checked else "[dim]○[/dim]"
        lines.append(f"  {mark} {escape(criterion.text)}")
    return "\n".join(lines)


def format_run_status(snapshot: DashboardSnapshot) -> str:
    status = snapshot.run_status
    if status is None:
        return "[dim]Ralph not running[/dim]"

    state = status.state or ("running" if status.is_running else "stopped")
    color = "green" if status.is_running else "dim"
    lines = [f"State: [{color}]{escape(state)}[/{color}]"]

    if status.iteration is not None:
        lines.append(f"Iteration: {status.iteration}")
    if status.model:
        lines.append(f"Model: {escape(status.model)}")
    if snapshot.seconds_since_activity is not None:
        lines.append(f"Last activity: {format_duration(snapshot.seconds_since_activity)} ago")
    if status.is_retrying:
        lines.append(f"[yellow]Retrying in {format_duration(int(status.retry_in))}[/yellow]")
    if status.exit_code is not None:
        lines.append(f"Exit code: {status.exit_code}")
    if status.last_error:
        lines.append(f"[red]Error: {escape(status.last_error)}[/red]")
    if snapshot.possibly_hanging:
        lines.append("[yellow]Possible hang: no activity for a while[/yellow]")

    return "\n".join(lines)


def format_output(snapshot: DashboardSnapshot, tail: int = OUTPUT_TAIL_LINES) -> str:
    output = snapshot.output
    lines = [escape(line) for line in output.stripped_lines[-tail:]]

    if output.error:
        lines.append(f"[red]{escape(output.error)}[/red]")
    if output.exit_code is not None:
        color = "green" if output.exit_code == 0 else "red"
        lines.append(f"[{color}]exited with code {output.exit_code}[/{color}]")

    if not lines:
        return "[dim]No output yet[/dim]"
    return "\n".join(lines)


class SnapshotWidget(Static):
    """Static that re-renders from the latest snapshot."""

    snapshot: reactive[Optional[DashboardSnapshot]] = reactive(None, always_update=True)

    def format(self, snapshot: DashboardSnapshot) -> str:
        raise NotImplementedError

    def render(self) -> str:
        if self.snapshot is None:
            return "Loading..."
        return self.format(self.snapshot)


class ProgressWidget(SnapshotWidget):
    def format(self, snapshot: DashboardSnapshot) -> str:
        return format_progress(snapshot)


class StoryWidget(SnapshotWidget):
    def format(self, snapshot: DashboardSnapshot) -> str:
        return format_story(snapshot)


class RunStatusWidget(SnapshotWidget):
    def format(self, snapshot: DashboardSnapshot) -> str:
        return format_run_status(snapshot)


class OutputWidget(SnapshotWidget):
    def format(self, snapshot: DashboardSnapshot) -> str:
        return format_output(snapshot)


class DashboardApp(App):
    """Main dashboard TUI application."""

    CSS = """
    #main-container {
        layout: vertical;
        padding: 0 1;
    }

    #progress-box, #story-box, #status-box {
        border: solid green;
        padding: 0 1;
        height: auto;
    }

    #output-box {
        border: solid blue;
        padding: 0 1;
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False),
    ]

    def __init__(self, config: DashboardConfig) -> None:
        super().__init__()
        self.config = config
        self.render_state = DashboardRenderState(
            RenderMode(config.mode),
            hang_threshold_seconds=config.hang_threshold_seconds,
        )
        self.reconciler = StateReconciler(config.prd_path)
        self.status_reader = StatusStreamReader(
            StatusFileLocator(config.status_dir, config.status_prefix, config.status_suffix)
        )
        self.watcher: Optional[DebouncedFileWatcher] = None
        self.batcher: Optional[OutputBatcher] = None

    @property
    def mode(self) -> RenderMode:
        return self.render_state.mode

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Container(ProgressWidget(id="progress"), id="progress-box"),
            Container(StoryWidget(id="story"), id="story-box"),
            Container(RunStatusWidget(id="run-status"), id="status-box"),
            Container(OutputWidget(id="output"), id="output-box"),
            id="main-container",
        )
        yield Footer()

    def on_mount(self) -> None:
        scheduler = TextualScheduler(self)
        self.batcher = OutputBatcher(
            scheduler,
            max_lines=self.config.max_lines,
            batch_lines=self.config.batch_lines,
            batch_ms=self.config.batch_ms,
        )

        self.reconciler.subscribe(self._on_stats)
        self.status_reader.subscribe(self._on_status)
        self.batcher.subscribe(self._on_output)

        self.reconciler.reload()

        if self.mode.follows_updates:
            self.watcher = DebouncedFileWatcher(
                self.reconciler.index_path,
                self.reconciler.stories_dir,
                self.reconciler.reload,
                scheduler,
                debounce_ms=self.config.debounce_ms,
                poll_interval_ms=self.config.poll_interval_ms,
                use_watch=self.config.use_watch,
                use_polling=self.config.use_polling,
            )
            self.watcher.start()
            self.status_reader.start(scheduler, self.config.poll_interval_ms / 1000)
            self.set_interval(CLOCK_INTERVAL_SECONDS, self.refresh_view)
        else:
            self.status_reader.read()
            self.set_timer(STARTUP_EXIT_DELAY_SECONDS, self.exit)

        self.refresh_view()

    def on_unmount(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        self.status_reader.stop()
        if self.batcher is not None:
            self.batcher.close()

    def _on_stats(self, stats) -> None:
        self.render_state.update_stats(stats)
        self.refresh_view()

    def _on_status(self, status) -> None:
        self.render_state.update_status(status)
        self.refresh_view()

    def _on_output(self, output) -> None:
        self.render_state.update_output(output)
        self.refresh_view()

    def push_output_event(self, event: Union[OutputEvent, dict]) -> None:
        """Entry point for the subprocess wrapper."""
        if self.batcher is None:
            logger.warning("Output event before dashboard mounted; dropped")
            return
        self.batcher.push_event(event)

    def push_output_events(self, events: Iterable[Union[OutputEvent, dict]]) -> None:
        if self.batcher is None:
            logger.warning("Output events before dashboard mounted; dropped")
            return
        self.batcher.push_events(events)

    def refresh_view(self) -> None:
        """Take one snapshot and hand it to every widget."""
        snapshot = self.render_state.snapshot()
        for widget in self.query(SnapshotWidget):
            widget.snapshot = snapshot

        self.title = f"ralph: {snapshot.stats.next_story_id or 'no story'}"
        if self.mode.follows_updates:
            self.sub_title = f"{self.mode.value} · {datetime.now().strftime('%H:%M:%S')}"
        else:
            self.sub_title = self.mode.value
