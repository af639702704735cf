"""Base enums for the progress event stream."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "EventKind",
    "Outcome",
]


class EventKind(str, Enum):
    """Discriminator for ProgressEvent variants."""

    STAGE_CHANGED = "stage_changed"
    PROGRESS_UPDATED = "progress_updated"
    COMPLETED = "completed"


class Outcome(str, Enum):
    """Terminal outcome of a run."""

    SUCCESS = "success"
    FAILURE = "failure"
