"""Progress parsing for build tool output.

Classifies output lines against a recognizer profile and emits typed
progress events.
"""

from __future__ import annotations

from .base import EventKind, Outcome
from .events import (
    Completed,
    ProgressEvent,
    ProgressEventBase,
    ProgressUpdated,
    StageChanged,
    is_terminal,
    parse_event,
)
from .profiles import (
    BUILD_PROFILE,
    PACKAGE_PROFILE,
    PROFILES,
    BracketCounter,
    PercentToken,
    ProgressRecognizer,
    RecognizerProfile,
    StageRule,
    profile_for_name,
)
from .progress import (
    CANCELLED_SUMMARY,
    UNEXPECTED_END_SUMMARY,
    EventSink,
    ProgressParser,
    classify_line,
    parse_lines,
)

__all__ = [
    # Enums
    "EventKind",
    "Outcome",
    # Events
    "ProgressEventBase",
    "StageChanged",
    "ProgressUpdated",
    "Completed",
    "ProgressEvent",
    "is_terminal",
    "parse_event",
    # Profiles
    "ProgressRecognizer",
    "BracketCounter",
    "PercentToken",
    "StageRule",
    "RecognizerProfile",
    "BUILD_PROFILE",
    "PACKAGE_PROFILE",
    "PROFILES",
    "profile_for_name",
    # Parser
    "EventSink",
    "ProgressParser",
    "classify_line",
    "parse_lines",
    "UNEXPECTED_END_SUMMARY",
    "CANCELLED_SUMMARY",
]
