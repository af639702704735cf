"""Console front-end and logging setup.

Drives the runner the way a UI redraw loop does: start a run, poll the
handle once per tick, stop at the terminal event.

    python -m ue_build_runner build --engine /opt/UE5 --project Game.uproject
    python -m ue_build_runner package --engine /opt/UE5 --project Game.uproject --platform Linux
    python -m ue_build_runner run --profile build --cwd . -- ./fake_build.sh
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import TextIO

from .commands import BuildMode, Platform, PreparedCommand, build_command, package_command
from .config import Config, get_config
from .errors import LaunchError
from .parsers import (
    PROFILES,
    Completed,
    ProgressEvent,
    ProgressUpdated,
    StageChanged,
    profile_for_name,
)
from .runner import BuildRunner, RunHandle
from .runtime import CommandSpec, ProcessLauncher, ShellWrap

__all__ = ["main", "configure_logging", "build_parser", "drive"]

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_LAUNCH_ERROR = 2
EXIT_INTERRUPTED = 130  # 128 + SIGINT(2)


def configure_logging(config: Config) -> None:
    """Configure handlers for the package namespace."""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG mode: write to temp file
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Third-party loggers stay at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("ue_build_runner").setLevel(log_level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ue-build-runner",
        description="Run engine build/package tools and report their progress",
    )
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    sub = parser.add_subparsers(dest="action", required=True)

    for action, help_text in (
        ("build", "Compile the project with UnrealBuildTool"),
        ("package", "Build, cook, stage and package with UAT"),
    ):
        p = sub.add_parser(action, help=help_text)
        p.add_argument("--engine", type=Path, required=True, help="Engine root (contains Engine/)")
        p.add_argument("--project", type=Path, required=True, help="Path to the .uproject file")
        p.add_argument(
            "--platform",
            choices=[p.value for p in Platform],
            default=Platform.WIN64.value,
        )
        p.add_argument(
            "--config",
            dest="mode",
            choices=[m.value for m in BuildMode],
            default=BuildMode.DEVELOPMENT.value,
        )

    run = sub.add_parser("run", help="Run an arbitrary command with a progress profile")
    run.add_argument("--profile", choices=sorted(PROFILES), required=True)
    run.add_argument("--cwd", type=Path, default=Path.cwd())
    run.add_argument("--shell", choices=[s.value for s in ShellWrap], default=ShellWrap.NONE.value)
    run.add_argument("command", nargs=argparse.REMAINDER, help="Program and arguments (after --)")
    return parser


def _prepare(args: argparse.Namespace) -> PreparedCommand:
    if args.action == "build":
        return build_command(args.engine, args.project, Platform(args.platform), BuildMode(args.mode))
    if args.action == "package":
        return package_command(args.engine, args.project, Platform(args.platform), BuildMode(args.mode))

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        raise ValueError("run requires a program after --")
    spec = CommandSpec(
        program=command[0],
        args=tuple(command[1:]),
        cwd=args.cwd,
        shell=ShellWrap(args.shell),
    )
    return PreparedCommand(spec=spec, profile=profile_for_name(args.profile))


def _render(event: ProgressEvent, stage: str, as_json: bool, out: TextIO) -> str:
    """Print one event and return the current stage label."""
    if as_json:
        print(event.model_dump_json(), file=out, flush=True)
        if isinstance(event, StageChanged):
            return event.label
        return stage

    if isinstance(event, StageChanged):
        print(event.label, file=out, flush=True)
        return event.label
    if isinstance(event, ProgressUpdated):
        print(f"[{event.fraction * 100:5.1f}%] {stage}".rstrip(), file=out, flush=True)
    elif isinstance(event, Completed):
        print(f"{event.outcome.value.upper()}: {event.summary}", file=out, flush=True)
    return stage


def drive(
    handle: RunHandle,
    *,
    poll_interval: float,
    as_json: bool = False,
    out: TextIO = sys.stdout,
) -> Completed:
    """Poll `handle` once per tick until its terminal event.

    Ctrl+C cancels the run and keeps polling so the cancelled
    Completed event is still received.
    """
    stage = ""
    interrupted = False
    while not handle.finished:
        try:
            for event in handle.poll():
                stage = _render(event, stage, as_json, out)
            if not handle.finished:
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            if interrupted:
                raise
            interrupted = True
            logger.warning("Interrupted, cancelling run")
            handle.cancel()

    assert handle.result is not None
    return handle.result


def main(argv: list[str] | None = None) -> int:
    """Entry point. Returns the process exit code."""
    config = get_config()
    configure_logging(config)
    args = build_parser().parse_args(argv)

    try:
        prepared = _prepare(args)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_LAUNCH_ERROR

    launcher = ProcessLauncher(
        term_timeout=config.term_timeout,
        kill_timeout=config.kill_timeout,
    )
    with BuildRunner(launcher, reveal=config.reveal) as runner:
        try:
            handle = runner.start(prepared.spec, prepared.profile)
        except LaunchError as e:
            logger.error(str(e))
            return EXIT_LAUNCH_ERROR

        result = drive(handle, poll_interval=config.poll_interval, as_json=args.json)

    if result.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_SUCCESS if result.succeeded else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
