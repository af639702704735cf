"""Console front-end tests.

Covers argument parsing, event rendering, the poll loop and main() exit codes
against the fake build tool.
"""

from __future__ import annotations

import io
import json
import os
import sys
from pathlib import Path
from unittest import mock

import pytest

from ue_build_runner import app
from ue_build_runner.config import reload_config
from ue_build_runner.parsers import (
    BUILD_PROFILE,
    PACKAGE_PROFILE,
    Completed,
    Outcome,
    ProgressUpdated,
    StageChanged,
)
from ue_build_runner.reveal import reveal_command, reveal_in_file_browser
from ue_build_runner.runtime import ShellWrap

FAKE_TOOL_PATH = Path(__file__).parent / "fixtures" / "fake_build_tool.py"


class FakeHandle:
    """Scripted RunHandle stand-in: one poll() result per tick."""

    def __init__(self, ticks, interrupt_on_tick: int | None = None):
        self._ticks = list(ticks)
        self._interrupt_on_tick = interrupt_on_tick
        self._tick = 0
        self.result = None
        self.cancelled = False

    @property
    def finished(self) -> bool:
        return self.result is not None

    def poll(self):
        self._tick += 1
        if self._tick == self._interrupt_on_tick:
            raise KeyboardInterrupt
        events = self._ticks.pop(0) if self._ticks else []
        for event in events:
            if isinstance(event, Completed):
                self.result = event
        return events

    def cancel(self):
        self.cancelled = True
        self._ticks = [[Completed(summary="Run cancelled", outcome=Outcome.FAILURE, cancelled=True)]]


@pytest.fixture
def app_env():
    """Fast polling, no reveal."""
    with mock.patch.dict(os.environ, {"UBR_POLL_INTERVAL": "0.01", "UBR_REVEAL": "false"}, clear=False):
        reload_config()
        yield
    reload_config()


class TestParser:
    """Test command line parsing."""

    def test_build_defaults(self, tmp_path: Path):
        args = app.build_parser().parse_args(
            ["build", "--engine", str(tmp_path), "--project", "Game.uproject"]
        )
        assert args.action == "build"
        assert args.platform == "Win64"
        assert args.mode == "Development"
        assert args.json is False

    def test_package_options(self, tmp_path: Path):
        args = app.build_parser().parse_args(
            ["--json", "package", "--engine", str(tmp_path), "--project", "Game.uproject",
             "--platform", "Linux", "--config", "Shipping"]
        )
        assert args.json is True
        assert args.platform == "Linux"
        assert args.mode == "Shipping"

    def test_unknown_platform_rejected(self, tmp_path: Path):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args(
                ["build", "--engine", str(tmp_path), "--project", "G.uproject", "--platform", "Amiga"]
            )

    def test_run_command(self, workspace: Path):
        args = app.build_parser().parse_args(
            ["run", "--profile", "package", "--cwd", str(workspace), "--shell", "sh",
             "--", "./RunUAT.sh", "BuildCookRun", "-cook"]
        )
        prepared = app._prepare(args)

        assert prepared.profile is PACKAGE_PROFILE
        assert prepared.spec.program == "./RunUAT.sh"
        assert prepared.spec.args == ("BuildCookRun", "-cook")
        assert prepared.spec.shell is ShellWrap.SH
        assert prepared.spec.cwd == workspace

    def test_run_without_program(self):
        args = app.build_parser().parse_args(["run", "--profile", "build", "--"])
        with pytest.raises(ValueError, match="program"):
            app._prepare(args)


class TestDrive:
    """Test the poll loop and rendering."""

    def test_renders_events(self):
        handle = FakeHandle([
            [StageChanged(label="Cooking...")],
            [],
            [ProgressUpdated(fraction=0.5)],
            [Completed(summary="Package succeeded", outcome=Outcome.SUCCESS)],
        ])
        out = io.StringIO()
        result = app.drive(handle, poll_interval=0.0, out=out)

        assert result.succeeded
        assert out.getvalue().splitlines() == [
            "Cooking...",
            "[ 50.0%] Cooking...",
            "SUCCESS: Package succeeded",
        ]

    def test_json_output(self):
        handle = FakeHandle([[StageChanged(label="Compiling..."), Completed(summary="x", outcome=Outcome.FAILURE)]])
        out = io.StringIO()
        app.drive(handle, poll_interval=0.0, as_json=True, out=out)

        records = [json.loads(line) for line in out.getvalue().splitlines()]
        assert [r["kind"] for r in records] == ["stage_changed", "completed"]
        assert records[1]["outcome"] == "failure"

    def test_interrupt_cancels_run(self):
        """The first Ctrl+C cancels and polling continues to the terminal event."""
        handle = FakeHandle([], interrupt_on_tick=1)
        result = app.drive(handle, poll_interval=0.0, out=io.StringIO())

        assert handle.cancelled
        assert result.cancelled


@pytest.mark.integration
class TestMain:
    """Test main() end to end with the fake build tool."""

    def _run_args(self, workspace: Path, profile: str, scenario: str) -> list[str]:
        return [
            "run", "--profile", profile, "--cwd", str(workspace),
            "--", sys.executable, str(FAKE_TOOL_PATH), "--scenario", scenario,
        ]

    def test_successful_build(self, app_env, workspace: Path, capsys):
        assert app.main(self._run_args(workspace, "build", "build")) == app.EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Compiling..." in out
        assert "SUCCESS: Build succeeded" in out

    def test_failed_package(self, app_env, workspace: Path, capsys):
        assert app.main(self._run_args(workspace, "package", "failed")) == app.EXIT_FAILURE
        assert "FAILURE: BUILD FAILED" in capsys.readouterr().out

    def test_launch_error(self, app_env, workspace: Path):
        argv = ["run", "--profile", "build", "--cwd", str(workspace / "missing"), "--", "tool"]
        assert app.main(argv) == app.EXIT_LAUNCH_ERROR

    def test_invalid_project(self, app_env, tmp_path: Path):
        argv = ["build", "--engine", str(tmp_path), "--project", str(tmp_path / "Game.sln")]
        assert app.main(argv) == app.EXIT_LAUNCH_ERROR


class TestReveal:
    """Test the file browser reveal helpers."""

    @pytest.mark.parametrize(
        "platform, program",
        [("win32", "explorer"), ("darwin", "open"), ("linux", "xdg-open")],
    )
    def test_reveal_command(self, tmp_path: Path, platform: str, program: str):
        assert reveal_command(tmp_path, platform) == [program, str(tmp_path)]

    def test_missing_directory(self, tmp_path: Path):
        with mock.patch("ue_build_runner.reveal.subprocess.Popen") as popen:
            assert reveal_in_file_browser(tmp_path / "Builds") is False
        popen.assert_not_called()

    def test_does_not_wait(self, tmp_path: Path):
        with mock.patch("ue_build_runner.reveal.subprocess.Popen") as popen:
            assert reveal_in_file_browser(tmp_path) is True
        popen.assert_called_once()
        popen.return_value.wait.assert_not_called()

    def test_browser_missing_is_reported(self, tmp_path: Path):
        with mock.patch("ue_build_runner.reveal.subprocess.Popen", side_effect=FileNotFoundError):
            assert reveal_in_file_browser(tmp_path) is False
