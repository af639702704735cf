"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src directory to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from ue_build_runner.runtime import CommandSpec  # noqa: E402

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_TOOL_PATH = FIXTURES_DIR / "fake_build_tool.py"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Temporary working directory for child processes."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def fake_tool(workspace: Path) -> Callable[..., CommandSpec]:
    """Factory for CommandSpecs that run the fake build tool."""

    def make(scenario: str = "build", *extra: str, **kwargs) -> CommandSpec:
        return CommandSpec(
            program=sys.executable,
            args=(str(FAKE_TOOL_PATH), "--scenario", scenario, *extra),
            cwd=workspace,
            **kwargs,
        )

    return make
