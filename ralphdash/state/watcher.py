"""
Debounced change detection for the PRD directory.

Two independent producers feed the same reload() consumer:

- watch: native filesystem notifications (watchdog) on index.json and,
  recursively, stories/. Bursts restart a debounce timer; reload() runs
  once the burst has been quiet for debounce_ms.
- polling: reload() every poll_interval_ms regardless of events. Native
  notifications are unreliable on some hosts (macOS, network mounts), so
  polling is the backstop that guarantees eventual consistency.

Both can run together. reload() must be idempotent.

watchdog delivers events on its observer thread; they are handed to the
event loop through the scheduler, so all watcher state is loop-only.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ralphdash.lib.constants import DEFAULT_DEBOUNCE_MS, DEFAULT_POLL_INTERVAL_MS
from ralphdash.lib.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

# Event types that mean file content may have changed. Opened/closed-no-write
# events are ignored so our own reads never trigger another reload.
CHANGE_EVENT_TYPES = frozenset({"created", "modified", "deleted", "moved", "closed"})

OBSERVER_JOIN_TIMEOUT_SECONDS = 1.0


class _ChangeHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events to the event loop."""

    def __init__(self, post: Callable[[], None], only: Optional[Path] = None) -> None:
        super().__init__()
        self._post = post
        # Backends report absolute, symlink-resolved paths (FSEvents: /private/var/...)
        self._only = os.path.realpath(only) if only is not None else None

    def _matches(self, event: FileSystemEvent) -> bool:
        if event.event_type not in CHANGE_EVENT_TYPES:
            return False
        if self._only is None:
            return True
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and os.path.realpath(os.fsdecode(p)) == self._only for p in paths)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if self._matches(event):
            self._post()


class DebouncedFileWatcher:
    """Turns change notifications into one reload() per quiet period."""

    def __init__(
        self,
        index_path: Path,
        stories_dir: Path,
        reload: Callable[[], object],
        scheduler: Scheduler,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        use_watch: bool = True,
        use_polling: bool = True,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.index_path = Path(index_path)
        self.stories_dir = Path(stories_dir)
        self._reload = reload
        self.scheduler = scheduler
        self.debounce_ms = debounce_ms
        self.poll_interval_ms = poll_interval_ms
        self.use_watch = use_watch
        self.use_polling = use_polling
        self._observer_factory = observer_factory

        self.watched_sources: set[str] = set()
        self.reload_count = 0
        self._observer = None
        self._debounce: Optional[TimerHandle] = None
        self._poll: Optional[TimerHandle] = None
        self._active = False

    def __enter__(self) -> "DebouncedFileWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        """Establish watch subscriptions and/or the polling interval. Never raises."""
        if self._active:
            return
        self._active = True

        if self.use_watch:
            self._start_observer()
        if self.use_polling:
            self._poll = self.scheduler.call_every(self.poll_interval_ms / 1000, self._run_reload)

        if not self.watched_sources and not self.use_polling:
            logger.warning("[watcher] no watch subscriptions and polling disabled; no live updates")

    def _post_change(self) -> None:
        # Runs on the observer thread
        self.scheduler.call_soon_threadsafe(self.notify)

    def _schedule(self, observer, source: str, directory: Path, recursive: bool, only: Optional[Path]) -> None:
        if not directory.is_dir():
            logger.warning(f"[watcher] cannot watch {source}: {directory} does not exist")
            return
        try:
            observer.schedule(_ChangeHandler(self._post_change, only=only), str(directory), recursive=recursive)
        except OSError as e:
            logger.warning(f"[watcher] cannot watch {source} at {directory}: {e}")
            return
        self.watched_sources.add(source)

    def _start_observer(self) -> None:
        try:
            observer = self._observer_factory()
        except OSError as e:
            logger.warning(f"[watcher] native file watching unavailable: {e}")
            return

        self._schedule(observer, "index", self.index_path.parent, recursive=False, only=self.index_path)
        self._schedule(observer, "stories", self.stories_dir, recursive=True, only=None)

        if not self.watched_sources:
            return

        try:
            observer.start()
        except (OSError, RuntimeError) as e:
            logger.warning(f"[watcher] failed to start file observer: {e}")
            self.watched_sources.clear()
            return

        self._observer = observer
        logger.debug(f"[watcher] watching {sorted(self.watched_sources)}")

    def notify(self) -> None:
        """A change was seen: (re)start the debounce timer."""
        if not self._active:
            return
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self.scheduler.call_later(self.debounce_ms / 1000, self._on_debounce)

    def _on_debounce(self) -> None:
        self._debounce = None
        self._run_reload()

    def _run_reload(self) -> None:
        if not self._active:
            return
        self.reload_count += 1
        self._reload()

    def stop(self) -> None:
        """Cancel timers and close subscriptions. Safe to call more than once."""
        self._active = False

        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None

        observer, self._observer = self._observer, None
        self.watched_sources.clear()
        if observer is not None:
            observer.stop()
            observer.join(timeout=OBSERVER_JOIN_TIMEOUT_SECONDS)
