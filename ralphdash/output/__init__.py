"""Subprocess output handling for the dashboard.

Events from the subprocess wrapper go in through OutputBatcher.push_event();
the UI reads OutputBatcher.output (an immutable OutputState).
"""

from ralphdash.output.batcher import BatcherState, OutputBatcher
from ralphdash.output.events import (
    DataEvent,
    ErrorEvent,
    ExitEvent,
    OutputEvent,
    UnknownEventError,
    decode_event,
)
