"""Line classifier and event emitter.

ProgressParser consumes output lines one at a time and pushes events to a
sink in arrival order. It guarantees a single terminal Completed event:
either from a success/failure marker, from finish() at end of stream, or
from abort() on cancellation. Everything after the terminal event is ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .base import Outcome
from .events import Completed, ProgressEvent, ProgressUpdated, StageChanged
from .profiles import RecognizerProfile

__all__ = [
    "EventSink",
    "ProgressParser",
    "UNEXPECTED_END_SUMMARY",
    "CANCELLED_SUMMARY",
    "classify_line",
    "parse_lines",
]

logger = logging.getLogger(__name__)

EventSink = Callable[[ProgressEvent], None]

UNEXPECTED_END_SUMMARY = "Process ended unexpectedly"
CANCELLED_SUMMARY = "Run cancelled"


def classify_line(profile: RecognizerProfile, line: str) -> ProgressEvent | None:
    """Map a single line to at most one event.

    Priority: stage banner, success marker, failure marker, numeric progress.
    Lines matching nothing return None.
    """
    rule = profile.match_stage(line)
    if rule is not None:
        return StageChanged(label=rule.label)

    if profile.is_success(line):
        return Completed(summary=profile.success_summary, outcome=Outcome.SUCCESS)

    if profile.is_failure(line):
        return Completed(summary=line.strip(), outcome=Outcome.FAILURE)

    fraction = profile.progress.match(line)
    if fraction is not None:
        return ProgressUpdated(fraction=fraction)

    return None


class ProgressParser:
    """Stateful parser for one run.

    Example:
        events: list[ProgressEvent] = []
        parser = ProgressParser(PACKAGE_PROFILE, events.append)
        for line in output:
            parser.feed(line)
        parser.finish(exit_code=0)
    """

    def __init__(self, profile: RecognizerProfile, sink: EventSink) -> None:
        self.profile = profile
        self._sink = sink
        self._terminal: Completed | None = None
        self._line_count = 0

    @property
    def finished(self) -> bool:
        """Whether the terminal event has been emitted."""
        return self._terminal is not None

    @property
    def terminal(self) -> Completed | None:
        return self._terminal

    @property
    def line_count(self) -> int:
        return self._line_count

    def feed(self, line: str) -> ProgressEvent | None:
        """Classify one line and emit the resulting event, if any.

        Returns the emitted event. Lines arriving after the terminal event
        are ignored.
        """
        if self._terminal is not None:
            return None
        self._line_count += 1

        event = classify_line(self.profile, line)
        if event is None:
            return None
        if isinstance(event, Completed):
            logger.debug(
                f"Terminal marker at line {self._line_count} "
                f"profile={self.profile.name} outcome={event.outcome.value}"
            )
            self._terminal = event
        self._sink(event)
        return event

    def finish(self, exit_code: int | None = None) -> Completed | None:
        """End of stream. Emits a failure unless a terminal event was seen."""
        if self._terminal is not None:
            return None
        summary = UNEXPECTED_END_SUMMARY
        if exit_code is not None:
            summary = f"{summary} (exit code {exit_code})"
        return self._complete(
            Completed(summary=summary, outcome=Outcome.FAILURE, exit_code=exit_code)
        )

    def fail(self, summary: str, exit_code: int | None = None) -> Completed | None:
        """Internal error while reading the run. Not a cancellation."""
        if self._terminal is not None:
            return None
        return self._complete(
            Completed(summary=summary, outcome=Outcome.FAILURE, exit_code=exit_code)
        )

    def abort(self, summary: str = CANCELLED_SUMMARY) -> Completed | None:
        """Cancellation. Emits a cancelled failure unless already finished."""
        if self._terminal is not None:
            return None
        return self._complete(
            Completed(summary=summary, outcome=Outcome.FAILURE, cancelled=True)
        )

    def _complete(self, event: Completed) -> Completed:
        self._terminal = event
        self._sink(event)
        return event


def parse_lines(
    profile: RecognizerProfile,
    lines: Iterable[str],
    exit_code: int | None = None,
) -> list[ProgressEvent]:
    """Run a finite line sequence through a fresh parser."""
    events: list[ProgressEvent] = []
    parser = ProgressParser(profile, events.append)
    for line in lines:
        parser.feed(line)
    parser.finish(exit_code=exit_code)
    return events
