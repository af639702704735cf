"""Recognizer profiles.

A profile is the data table the parser walks for every output line:
stage banners first (first match wins), then terminal markers, then the one
numeric progress recognizer that matches the tool being run. New tools or
banners are added here without touching the parser's control flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final, Protocol

__all__ = [
    "ProgressRecognizer",
    "BracketCounter",
    "PercentToken",
    "StageRule",
    "RecognizerProfile",
    "BUILD_PROFILE",
    "PACKAGE_PROFILE",
    "PROFILES",
    "profile_for_name",
]


class ProgressRecognizer(Protocol):
    """Extracts a completion fraction from one line, or None."""

    name: str

    def match(self, line: str) -> float | None:
        ...


class BracketCounter:
    """`[current/total]` counters printed by UnrealBuildTool actions.

    `[12/48] Compile Module.cpp` -> 0.25. A zero or negative total never
    produces a value; a current beyond total is clamped to 1.0.
    """

    name = "bracket_counter"
    _PATTERN = re.compile(r"\[\s*(\d+)\s*/\s*(\d+)\s*\]")

    def match(self, line: str) -> float | None:
        m = self._PATTERN.search(line)
        if not m:
            return None
        try:
            current = int(m.group(1))
            total = int(m.group(2))
        except ValueError:
            return None
        if total <= 0:
            return None
        return min(current / total, 1.0)


class PercentToken:
    """Bare `NN%` tokens printed by AutomationTool steps.

    `67%` -> 0.67. Values above 100 are not treated as progress.
    """

    name = "percent_token"
    _PATTERN = re.compile(r"(?<![\w.])(\d{1,3})%")

    def match(self, line: str) -> float | None:
        m = self._PATTERN.search(line)
        if not m:
            return None
        try:
            percent = int(m.group(1))
        except ValueError:
            return None
        if percent > 100:
            return None
        return percent / 100


@dataclass(frozen=True)
class StageRule:
    """Banner substring mapped to the stage label it announces."""

    marker: str
    label: str


@dataclass(frozen=True)
class RecognizerProfile:
    """Line-matching rules for one kind of invocation.

    Attributes:
        name: Profile name used by the console and logs
        progress: The numeric recognizer active for this tool
        stage_rules: Banner table, checked in order, first match wins
        success_markers: Substrings that end the run successfully
        failure_markers: Substrings that end the run with a failure
        success_summary: Summary text of the success Completed event
    """

    name: str
    progress: ProgressRecognizer
    stage_rules: tuple[StageRule, ...] = ()
    success_markers: tuple[str, ...] = ()
    failure_markers: tuple[str, ...] = ()
    success_summary: str = "Completed successfully"

    def match_stage(self, line: str) -> StageRule | None:
        for rule in self.stage_rules:
            if rule.marker in line:
                return rule
        return None

    def is_success(self, line: str) -> bool:
        return any(marker in line for marker in self.success_markers)

    def is_failure(self, line: str) -> bool:
        return any(marker in line for marker in self.failure_markers)


def _uat_banner(command: str) -> str:
    return f"********** {command} COMMAND STARTED **********"


# UnrealBuildTool driven through Build.sh / Build.bat
BUILD_PROFILE: Final[RecognizerProfile] = RecognizerProfile(
    name="build",
    progress=BracketCounter(),
    stage_rules=(
        StageRule("Parsing headers for", "Generating headers..."),
        StageRule("Building ", "Compiling..."),
    ),
    success_markers=("Result: Succeeded",),
    failure_markers=("Result: Failed", "BUILD FAILED"),
    success_summary="Build succeeded",
)

# AutomationTool BuildCookRun driven through RunUAT.sh / RunUAT.bat
PACKAGE_PROFILE: Final[RecognizerProfile] = RecognizerProfile(
    name="package",
    progress=PercentToken(),
    stage_rules=(
        StageRule(_uat_banner("BUILD"), "Building..."),
        StageRule(_uat_banner("COOK"), "Cooking..."),
        StageRule(_uat_banner("STAGE"), "Staging..."),
        StageRule(_uat_banner("PACKAGE"), "Packaging..."),
        StageRule(_uat_banner("ARCHIVE"), "Archiving..."),
    ),
    success_markers=(
        "BUILD SUCCESSFUL",
        "AutomationTool exiting with ExitCode=0 (Success)",
    ),
    failure_markers=("BUILD FAILED",),
    success_summary="Package succeeded",
)

PROFILES: Final[dict[str, RecognizerProfile]] = {
    BUILD_PROFILE.name: BUILD_PROFILE,
    PACKAGE_PROFILE.name: PACKAGE_PROFILE,
}


def profile_for_name(name: str) -> RecognizerProfile:
    """Look up a built-in profile by name (case-insensitive).

    Raises:
        ValueError: Unknown profile name
    """
    key = name.strip().lower()
    try:
        return PROFILES[key]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(f"unknown profile {name!r} (expected one of: {known})") from None
