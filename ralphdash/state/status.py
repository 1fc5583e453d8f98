"""
Live run status from the ralph status file.

The status file is rewritten in place by the loop while we read it, so a
parse failure is the normal cost of racing the writer: the reader keeps the
last good value instead of blanking the display. A missing file means the
loop is not running.
"""

import logging
from typing import Callable, Optional

from ralphdash.lib.models import RunStatus
from ralphdash.lib.scheduler import Scheduler, TimerHandle
from ralphdash.lib.validate import DocumentCorrupt, DocumentMissing, load_document
from ralphdash.state.locator import StatusFileLocator

logger = logging.getLogger(__name__)

StatusCallback = Callable[[Optional[RunStatus]], None]

_UNSET = object()


class StatusStreamReader:
    """Reads RunStatus from the freshest status file and publishes changes."""

    def __init__(self, locator: StatusFileLocator) -> None:
        self.locator = locator
        self.status: Optional[RunStatus] = None
        self._published = _UNSET
        self._subscribers: list[StatusCallback] = []
        self._poll: Optional[TimerHandle] = None

    def subscribe(self, callback: StatusCallback) -> None:
        self._subscribers.append(callback)

    def read(self) -> Optional[RunStatus]:
        """Return current RunStatus, or None when no status file exists."""
        path = self.locator.locate()
        if path is None:
            self.status = None
        else:
            try:
                data = load_document(path, "status")
                self.status = RunStatus.from_dict(data)
            except DocumentMissing:
                # Removed between locate() and read: the shell exited
                self.status = None
            except DocumentCorrupt as e:
                logger.debug(f"[status] keeping previous status: {e}")

        self._publish(self.status)
        return self.status

    def _publish(self, status: Optional[RunStatus]) -> None:
        if self._published is not _UNSET and self._published == status:
            return
        self._published = status
        for callback in self._subscribers:
            callback(status)

    def start(self, scheduler: Scheduler, interval: float) -> None:
        """Read now, then every interval seconds."""
        self.stop()
        self.read()
        self._poll = scheduler.call_every(interval, self.read)

    def stop(self) -> None:
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None
