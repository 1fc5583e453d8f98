"""
Output events produced by the subprocess wrapper.

Wire format (one JSON object per event, in arrival order):
    {"type": "data",  "data": "...", "timestamp": "..."}
    {"type": "exit",  "exitCode": 0}
    {"type": "error", "data": "spawn failed"}
"""

from dataclasses import dataclass
from typing import Optional, Union


class UnknownEventError(ValueError):
    """Event dict has a type we do not understand."""


@dataclass(frozen=True)
class DataEvent:
    text: str
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class ExitEvent:
    code: Optional[int] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class ErrorEvent:
    message: str = "Unknown error"
    timestamp: Optional[str] = None


OutputEvent = Union[DataEvent, ExitEvent, ErrorEvent]


def decode_event(raw: dict) -> OutputEvent:
    """Convert a wire dict into an OutputEvent.

    Raises:
        UnknownEventError: if the type field is missing or unknown
    """
    event_type = raw.get("type")
    timestamp = raw.get("timestamp")

    if event_type == "data":
        return DataEvent(text=raw.get("data") or "", timestamp=timestamp)
    if event_type == "exit":
        return ExitEvent(code=raw.get("exitCode"), timestamp=timestamp)
    if event_type == "error":
        return ErrorEvent(message=raw.get("data") or "Unknown error", timestamp=timestamp)

    raise UnknownEventError(f"Unknown output event type: {event_type!r}")
