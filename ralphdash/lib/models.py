"""
Data model for PRD task state and ralph run status.

All types are frozen dataclasses built from the raw JSON the ralph loop
writes. Parsing assumes the document already passed schema validation
(see validate.load_document), so from_dict only fills defaults.
"""

from dataclasses import dataclass
from typing import Optional

from ralphdash.lib.constants import RUNNING_STATES


@dataclass(frozen=True)
class AcceptanceCriterion:
    """One checkable sub-condition of a story."""
    text: str
    checked: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "AcceptanceCriterion":
        return cls(text=data["text"], checked=bool(data.get("checked", False)))


@dataclass(frozen=True)
class Story:
    """A single story file from prd-json/stories/<id>.json."""
    id: str
    title: str = ""
    status: str = ""
    acceptance_criteria: tuple[AcceptanceCriterion, ...] = ()
    dependencies: frozenset[str] = frozenset()
    passes: bool = False
    description: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    story_points: Optional[float] = None
    model: Optional[str] = None
    blocked_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Story":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            status=data.get("status", ""),
            acceptance_criteria=tuple(
                AcceptanceCriterion.from_dict(c) for c in data.get("acceptanceCriteria") or ()
            ),
            dependencies=frozenset(data.get("dependencies") or ()),
            passes=bool(data.get("passes", False)),
            description=data.get("description"),
            type=data.get("type"),
            priority=data.get("priority"),
            story_points=data.get("storyPoints"),
            model=data.get("model"),
            blocked_by=data.get("blockedBy"),
        )

    @property
    def criteria_count(self) -> int:
        return len(self.acceptance_criteria)

    @property
    def checked_count(self) -> int:
        return sum(1 for c in self.acceptance_criteria if c.checked)


@dataclass(frozen=True)
class StoryCounts:
    """Story totals shown in the progress header."""
    total: int
    completed: int
    pending: int
    blocked: int


def derive_story_counts(story_order, pending, blocked) -> StoryCounts:
    """Derive story counts from the index arrays.

    completed is floored at zero: the writer updates the three arrays
    non-atomically, so pending + blocked can briefly exceed the total.
    Ids are not de-duplicated across arrays.
    """
    total = len(story_order)
    pending_count = len(pending)
    blocked_count = len(blocked)
    return StoryCounts(
        total=total,
        completed=max(0, total - pending_count - blocked_count),
        pending=pending_count,
        blocked=blocked_count,
    )


@dataclass(frozen=True)
class IndexStats:
    """Optional cached counts stored in index.json. Any field may be missing."""
    total: Optional[int] = None
    completed: Optional[int] = None
    pending: Optional[int] = None
    blocked: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "IndexStats":
        return cls(
            total=data.get("total"),
            completed=data.get("completed"),
            pending=data.get("pending"),
            blocked=data.get("blocked"),
        )


@dataclass(frozen=True)
class TaskIndex:
    """prd-json/index.json"""
    story_order: tuple[str, ...]
    pending: tuple[str, ...] = ()
    blocked: tuple[str, ...] = ()
    next_story: Optional[str] = None
    stats: Optional[IndexStats] = None
    generated_at: Optional[str] = None
    new_stories: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "TaskIndex":
        stats = data.get("stats")
        return cls(
            story_order=tuple(data.get("storyOrder") or ()),
            pending=tuple(data.get("pending") or ()),
            blocked=tuple(data.get("blocked") or ()),
            next_story=data.get("nextStory") or None,
            stats=IndexStats.from_dict(stats) if stats is not None else None,
            generated_at=data.get("generatedAt"),
            new_stories=tuple(data.get("newStories") or ()),
        )

    @property
    def counts(self) -> StoryCounts:
        """Story counts, preferring the cached stats field by field."""
        derived = derive_story_counts(self.story_order, self.pending, self.blocked)
        if self.stats is None:
            return derived

        def pick(cached: Optional[int], fallback: int) -> int:
            return fallback if cached is None else cached

        return StoryCounts(
            total=pick(self.stats.total, derived.total),
            completed=pick(self.stats.completed, derived.completed),
            pending=pick(self.stats.pending, derived.pending),
            blocked=pick(self.stats.blocked, derived.blocked),
        )


@dataclass(frozen=True)
class AggregatedStats:
    """Summary of the whole PRD, recomputed on every reconciliation."""
    total_stories: int = 0
    completed_stories: int = 0
    pending_stories: int = 0
    blocked_stories: int = 0
    total_criteria: int = 0
    checked_criteria: int = 0
    current_story: Optional[Story] = None
    next_story_id: str = ""

    @property
    def story_progress(self) -> float:
        if not self.total_stories:
            return 0.0
        return self.completed_stories / self.total_stories

    @property
    def criteria_progress(self) -> float:
        if not self.total_criteria:
            return 0.0
        return self.checked_criteria / self.total_criteria


EMPTY_STATS = AggregatedStats()


@dataclass(frozen=True)
class RunStatus:
    """Status file written by ralph.zsh at /tmp/ralph-status-$$.json"""
    is_running: bool
    iteration: Optional[int] = None
    model: Optional[str] = None
    exit_code: Optional[int] = None
    last_error: Optional[str] = None
    state: Optional[str] = None
    last_activity: Optional[float] = None  # Unix timestamp in seconds
    retry_in: float = 0  # Seconds until retry (0 if not retrying)
    pid: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RunStatus":
        state = data.get("state")
        if "isRunning" in data:
            is_running = bool(data["isRunning"])
        else:
            is_running = state in RUNNING_STATES
        last_error = data.get("lastError")
        if last_error is None:
            last_error = data.get("error")
        return cls(
            is_running=is_running,
            iteration=data.get("iteration"),
            model=data.get("model"),
            exit_code=data.get("exitCode"),
            last_error=last_error,
            state=state,
            last_activity=data.get("lastActivity"),
            retry_in=data.get("retryIn") or 0,
            pid=data.get("pid"),
        )

    @property
    def is_retrying(self) -> bool:
        return self.state == "retry" and self.retry_in > 0

    def seconds_since_activity(self, now: float) -> Optional[int]:
        if self.last_activity is None:
            return None
        return max(0, int(now - self.last_activity))

    def is_hanging(self, now: float, threshold: float) -> bool:
        """Running, but nothing written for at least threshold seconds."""
        idle = self.seconds_since_activity(now)
        return self.is_running and idle is not None and idle >= threshold


@dataclass(frozen=True)
class OutputState:
    """Published view of one subprocess run's output."""
    lines: tuple[str, ...] = ()
    stripped_lines: tuple[str, ...] = ()
    is_running: bool = False
    exit_code: Optional[int] = None
    error: Optional[str] = None


EMPTY_OUTPUT = OutputState()
