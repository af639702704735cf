"""Exceptions raised by the build runner.

Only LaunchError crosses the runner boundary. StreamReadError is raised by the
line stream and folded into a terminal Completed event by the pump.
"""

from __future__ import annotations

__all__ = [
    "BuildRunnerError",
    "LaunchError",
    "StreamReadError",
]


class BuildRunnerError(Exception):
    """Base exception for the build runner."""
    pass


class LaunchError(BuildRunnerError):
    """The child process could not be started.

    Attributes:
        program: Program that failed to start
        os_error: Underlying OS error, if any
    """

    def __init__(self, program: str, os_error: OSError | None = None) -> None:
        self.program = program
        self.os_error = os_error
        if os_error is not None:
            super().__init__(f"Failed to launch {program!r}: {os_error}")
        else:
            super().__init__(f"Failed to launch {program!r}")


class StreamReadError(BuildRunnerError):
    """Reading the child's output failed mid-stream."""
    pass
