"""
Composed dashboard state.

Three sources update independently (PRD stats, run status, subprocess
output). DashboardRenderState keeps the latest value of each and produces
one immutable DashboardSnapshot per render tick, so the view never sees a
half-applied update.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ralphdash.lib.constants import DEFAULT_HANG_THRESHOLD_SECONDS
from ralphdash.lib.models import EMPTY_OUTPUT, EMPTY_STATS, AggregatedStats, OutputState, RunStatus


class RenderMode(str, Enum):
    """How the dashboard was launched."""
    STARTUP = "startup"  # render once, then exit
    ITERATION = "iteration"  # between loop iterations, live updates
    LIVE = "live"  # full live dashboard

    @property
    def follows_updates(self) -> bool:
        return self is not RenderMode.STARTUP


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the view needs for one frame."""
    mode: RenderMode
    stats: AggregatedStats
    has_data: bool
    run_status: Optional[RunStatus]
    output: OutputState
    taken_at: float
    seconds_since_activity: Optional[int] = None
    possibly_hanging: bool = False

    @property
    def is_running(self) -> bool:
        return self.run_status is not None and self.run_status.is_running


class DashboardRenderState:
    """Latest value from each source. Stats are never blanked once seen."""

    def __init__(
        self,
        mode: RenderMode,
        hang_threshold_seconds: float = DEFAULT_HANG_THRESHOLD_SECONDS,
    ) -> None:
        self.mode = RenderMode(mode)
        self.hang_threshold_seconds = hang_threshold_seconds
        self.stats: Optional[AggregatedStats] = None
        self.run_status: Optional[RunStatus] = None
        self.output: OutputState = EMPTY_OUTPUT

    def update_stats(self, stats: Optional[AggregatedStats]) -> None:
        # None means "no fresh data this tick", not "no data"
        if stats is not None:
            self.stats = stats

    def update_status(self, status: Optional[RunStatus]) -> None:
        self.run_status = status

    def update_output(self, output: OutputState) -> None:
        self.output = output

    def snapshot(self, now: Optional[float] = None) -> DashboardSnapshot:
        if now is None:
            now = time.time()

        idle = None
        hanging = False
        if self.run_status is not None:
            idle = self.run_status.seconds_since_activity(now)
            hanging = self.run_status.is_hanging(now, self.hang_threshold_seconds)

        return DashboardSnapshot(
            mode=self.mode,
            stats=self.stats if self.stats is not None else EMPTY_STATS,
            has_data=self.stats is not None,
            run_status=self.run_status,
            output=self.output,
            taken_at=now,
            seconds_since_activity=idle,
            possibly_hanging=hanging,
        )
