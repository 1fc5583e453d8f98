"""Shared fixtures: manual-clock scheduler and PRD directory builders."""

import json

import pytest


class FakeTimer:
    """TimerHandle for FakeScheduler."""

    def __init__(self, due: float, callback, interval: float = None):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when advance() is called."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval, callback):
        timer = FakeTimer(self.now + interval, callback, interval=interval)
        self.timers.append(timer)
        return timer

    def call_soon_threadsafe(self, callback):
        callback()

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            if timer.interval:
                timer.due += timer.interval
            else:
                timer.fired = True
            timer.callback()
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


def write_json(path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


def make_story(story_id: str, checked: list[bool], title: str = "") -> dict:
    return {
        "id": story_id,
        "title": title or f"Story {story_id}",
        "status": "pending",
        "acceptanceCriteria": [
            {"text": f"criterion {i}", "checked": c} for i, c in enumerate(checked)
        ],
        "dependencies": [],
        "passes": False,
    }


@pytest.fixture
def prd_dir(tmp_path):
    """PRD root with three stories, US-1 done and US-2/US-3 pending."""
    root = tmp_path / "prd-json"
    write_json(root / "index.json", {
        "generatedAt": "2026-01-01T00:00:00Z",
        "nextStory": "US-2",
        "storyOrder": ["US-1", "US-2", "US-3"],
        "pending": ["US-2", "US-3"],
        "blocked": [],
        "newStories": [],
    })
    write_json(root / "stories" / "US-1.json", make_story("US-1", [True, True]))
    write_json(root / "stories" / "US-2.json", make_story("US-2", [True, False, False]))
    write_json(root / "stories" / "US-3.json", make_story("US-3", [False]))
    return root
