"""Run engine build/package tools and extract progress from their output.

Example:
    from ue_build_runner import BuildRunner, build_command

    prepared = build_command(engine_root, uproject)
    with BuildRunner() as runner:
        handle = runner.start(prepared.spec, prepared.profile)
        while not handle.finished:
            for event in handle.poll():
                ...
"""

from __future__ import annotations

from .commands import BuildMode, Platform, PreparedCommand, build_command, package_command
from .errors import BuildRunnerError, LaunchError, StreamReadError
from .parsers import (
    BUILD_PROFILE,
    PACKAGE_PROFILE,
    Completed,
    Outcome,
    ProgressEvent,
    ProgressParser,
    ProgressUpdated,
    RecognizerProfile,
    StageChanged,
)
from .runner import BuildRunner, RunHandle
from .runtime import CommandSpec, ProcessLauncher, ShellWrap

__version__ = "0.1.0"

__all__ = [
    "BUILD_PROFILE",
    "PACKAGE_PROFILE",
    "BuildMode",
    "BuildRunner",
    "BuildRunnerError",
    "CommandSpec",
    "Completed",
    "LaunchError",
    "Outcome",
    "Platform",
    "PreparedCommand",
    "ProcessLauncher",
    "ProgressEvent",
    "ProgressParser",
    "ProgressUpdated",
    "RecognizerProfile",
    "RunHandle",
    "ShellWrap",
    "StageChanged",
    "StreamReadError",
    "build_command",
    "package_command",
]
