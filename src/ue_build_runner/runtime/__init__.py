"""Runtime module for launching build tools.

Provides isolated, non-blocking process launch with a merged line stream and
reliable termination.
"""

from __future__ import annotations

from .process_launcher import (
    CommandSpec,
    LaunchedProcess,
    ProcessLauncher,
    ShellWrap,
)

__all__ = [
    "CommandSpec",
    "LaunchedProcess",
    "ProcessLauncher",
    "ShellWrap",
]
