"""Shared constants for the dashboard."""

# PRD layout
INDEX_FILENAME = "index.json"
STORIES_DIRNAME = "stories"

# Status files written by ralph.zsh as ralph-status-$$.json
STATUS_FILE_PREFIX = "ralph-status-"
STATUS_FILE_SUFFIX = ".json"

# Timing defaults (milliseconds)
DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_DEBOUNCE_MS = 200
MIN_DEBOUNCE_MS = 100
MAX_DEBOUNCE_MS = 500
DEFAULT_BATCH_MS = 100

# Output buffer defaults
DEFAULT_BATCH_LINES = 50
DEFAULT_MAX_LINES = 1000

# Seconds without status activity before a run looks stuck
DEFAULT_HANG_THRESHOLD_SECONDS = 60

# Startup mode renders once then exits after this delay
STARTUP_EXIT_DELAY_SECONDS = 0.1

# Status states that mean the loop is still alive
RUNNING_STATES = frozenset({"running", "cr_review", "retry"})
