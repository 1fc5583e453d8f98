"""
Reconcile PRD files on disk into AggregatedStats.

Layout under the PRD root:
    index.json            story order, pending/blocked ids, next story, optional stats
    stories/<id>.json     one file per story

Reconciliation re-derives everything from scratch on each call, so it can
be triggered by any number of producers (native watch, polling) without
coordination: for a fixed snapshot of the files the result is identical.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from ralphdash.lib.constants import INDEX_FILENAME, STORIES_DIRNAME
from ralphdash.lib.models import AggregatedStats, Story, TaskIndex
from ralphdash.lib.validate import DocumentError, DocumentMissing, load_document

logger = logging.getLogger(__name__)

StatsCallback = Callable[[AggregatedStats], None]


def index_path(prd_path: Path) -> Path:
    return prd_path / INDEX_FILENAME


def stories_dir(prd_path: Path) -> Path:
    return prd_path / STORIES_DIRNAME


def load_story(prd_path: Path, story_id: str) -> Optional[Story]:
    """Load one story, or None if it is missing or malformed."""
    path = stories_dir(prd_path) / f"{story_id}.json"
    try:
        return Story.from_dict(load_document(path, "story"))
    except DocumentMissing:
        logger.debug(f"Story {story_id} has no file at {path}")
    except DocumentError as e:
        logger.debug(f"Skipping unreadable story {story_id}: {e}")
    return None


def reconcile(prd_path: Path) -> Optional[AggregatedStats]:
    """Build AggregatedStats from the PRD directory.

    Returns None when index.json is missing or unparsable; callers keep
    their previous stats in that case. Bad story files are skipped.
    """
    try:
        index = TaskIndex.from_dict(load_document(index_path(prd_path), "index"))
    except DocumentMissing:
        return None
    except DocumentError as e:
        logger.debug(f"Index unreadable, keeping previous stats: {e}")
        return None

    current_story = load_story(prd_path, index.next_story) if index.next_story else None

    total_criteria = 0
    checked_criteria = 0
    for story_id in index.story_order:
        story = load_story(prd_path, story_id)
        if story is None:
            continue
        total_criteria += story.criteria_count
        checked_criteria += story.checked_count

    counts = index.counts
    return AggregatedStats(
        total_stories=counts.total,
        completed_stories=counts.completed,
        pending_stories=counts.pending,
        blocked_stories=counts.blocked,
        total_criteria=total_criteria,
        checked_criteria=checked_criteria,
        current_story=current_story,
        next_story_id=index.next_story or "",
    )


class StateReconciler:
    """Holds the last good AggregatedStats for a PRD directory.

    reload() is the single consumer for every change producer. Subscribers
    hear about the stats only when they actually change.
    """

    def __init__(self, prd_path: Path) -> None:
        self.prd_path = Path(prd_path)
        self.stats: Optional[AggregatedStats] = None
        self._subscribers: list[StatsCallback] = []

    @property
    def index_path(self) -> Path:
        return index_path(self.prd_path)

    @property
    def stories_dir(self) -> Path:
        return stories_dir(self.prd_path)

    def subscribe(self, callback: StatsCallback) -> None:
        self._subscribers.append(callback)

    def reload(self) -> Optional[AggregatedStats]:
        """Reconcile now. Returns the fresh stats, or None to mean "keep previous"."""
        fresh = reconcile(self.prd_path)
        if fresh is None or fresh == self.stats:
            return fresh

        self.stats = fresh
        for callback in self._subscribers:
            callback(fresh)
        return fresh
