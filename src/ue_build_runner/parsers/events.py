"""Progress event models.

A run produces zero or more StageChanged / ProgressUpdated events followed by
exactly one Completed event. Events are frozen and carry no timestamps or
generated ids, so the same output always maps to equal event sequences.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .base import EventKind, Outcome

__all__ = [
    "ProgressEventBase",
    "StageChanged",
    "ProgressUpdated",
    "Completed",
    "ProgressEvent",
    "parse_event",
    "is_terminal",
]


class ProgressEventBase(BaseModel):
    """Base class for all progress events."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
    )

    kind: str


class StageChanged(ProgressEventBase):
    """A new pipeline phase started (build, cook, stage, package...)."""

    kind: Literal["stage_changed"] = "stage_changed"
    label: str


class ProgressUpdated(ProgressEventBase):
    """Completion estimate for the current phase.

    Consumers must tolerate repeated and non-monotonic values.
    """

    kind: Literal["progress_updated"] = "progress_updated"
    fraction: float = Field(ge=0.0, le=1.0)


class Completed(ProgressEventBase):
    """Terminal event; nothing follows it.

    Attributes:
        summary: Human-readable result text
        outcome: Success or failure
        exit_code: Child exit code when known
        cancelled: True when the run ended through cancellation
    """

    kind: Literal["completed"] = "completed"
    summary: str
    outcome: Outcome
    exit_code: int | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS


ProgressEvent = Annotated[
    Union[StageChanged, ProgressUpdated, Completed],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def parse_event(data: dict | str) -> ProgressEvent:
    """Rebuild an event from its dict or JSON form."""
    if isinstance(data, str):
        return _event_adapter.validate_json(data)
    return _event_adapter.validate_python(data)


def is_terminal(event: ProgressEventBase) -> bool:
    """Whether the event ends its run."""
    return event.kind == EventKind.COMPLETED
