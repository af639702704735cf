"""Process launcher with group isolation and reliable termination.

ue-build-runner runtime module

This module provides:
- CommandSpec: immutable description of one build tool invocation
- ProcessLauncher: validation and non-blocking spawn of the child
- LaunchedProcess: line stream over stdout (stderr merged) plus termination

Key design points:
- stderr is merged into stdout so banners and errors keep their relative order
- POSIX: start_new_session=True to create new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Termination targets the process group (SIGTERM -> timeout -> SIGKILL)
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
import subprocess
import sys
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import LaunchError, StreamReadError

__all__ = [
    "CommandSpec",
    "LaunchedProcess",
    "ProcessLauncher",
    "ShellWrap",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts (only used to escalate after a terminate request)
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

# UAT prints very long command lines; keep well above asyncio's 64 KiB default
STREAM_LIMIT = 1024 * 1024


class ShellWrap(str, Enum):
    """How the program is wrapped before it is executed.

    - NONE: execute the program directly
    - CMD: `cmd /C program args...` (Windows batch files)
    - SH: `sh program args...` (Unix shell scripts)
    """

    NONE = "none"
    CMD = "cmd"
    SH = "sh"

    @classmethod
    def native(cls) -> "ShellWrap":
        """Wrapper for the build scripts of the current platform."""
        return cls.CMD if IS_WINDOWS else cls.SH


@dataclass(frozen=True)
class CommandSpec:
    """Specification for one build tool invocation.

    Attributes:
        program: Resolved program or script path
        args: Arguments passed after the program
        cwd: Working directory for the process
        shell: Shell wrapping rule
        env: Environment overrides merged over the parent environment
        reveal_dir: Directory to reveal in the file browser after success
    """

    program: str
    args: tuple[str, ...] = ()
    cwd: Path = field(default_factory=Path.cwd)
    shell: ShellWrap = ShellWrap.NONE
    env: Mapping[str, str] | None = None
    reveal_dir: Path | None = None

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "program", str(self.program))
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))
        object.__setattr__(self, "cwd", Path(self.cwd))
        object.__setattr__(self, "shell", ShellWrap(self.shell))
        if self.reveal_dir is not None:
            object.__setattr__(self, "reveal_dir", Path(self.reveal_dir))

    def argv(self) -> list[str]:
        """Final argument vector handed to the OS."""
        if self.shell is ShellWrap.CMD:
            return ["cmd", "/C", self.program, *self.args]
        if self.shell is ShellWrap.SH:
            return ["sh", self.program, *self.args]
        return [self.program, *self.args]

    def display(self) -> str:
        return " ".join(self.argv())


class LaunchedProcess:
    """A running child process and its merged output stream.

    The stream is consumed once through lines(). The launcher never waits on
    the child by itself; callers either read to EOF and wait(), or call
    terminate().
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        spec: CommandSpec,
        *,
        term_timeout: float = DEFAULT_TERM_TIMEOUT,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
        encoding: str = "utf-8",
    ) -> None:
        self._process = process
        self.spec = spec
        self.term_timeout = term_timeout
        self.kill_timeout = kill_timeout
        self.encoding = encoding

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded output lines until EOF.

        Lines longer than the stream limit are dropped and reading continues.

        Yields:
            Lines without their trailing newline

        Raises:
            StreamReadError: The pipe broke
        """
        stdout = self._process.stdout
        if stdout is None:
            return
        while True:
            try:
                raw = await stdout.readline()
            except ValueError as e:
                # asyncio already discarded the over-long chunk
                logger.warning(f"Dropped over-long output line pid={self.pid}: {e}")
                continue
            except OSError as e:
                raise StreamReadError(f"output stream of pid={self.pid} failed: {e}") from e
            if not raw:
                return
            yield raw.decode(self.encoding, errors="replace").rstrip("\r\n")

    async def wait(self) -> int:
        return await self._process.wait()

    async def terminate(self) -> None:
        """Terminate the process group, shielded from cancellation.

        Safe to call when the process already exited.
        """
        if not self.running:
            return
        try:
            # Shield entire cleanup from cancellation
            await asyncio.shield(self._terminate_process())
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._terminate_process()
            raise

    async def _terminate_process(self) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit
        """
        process = self._process
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            # Step 1: Graceful termination
            if IS_WINDOWS:
                self._windows_terminate()
            else:
                self._posix_signal(signal.SIGTERM)

            # Step 2: Wait for graceful exit
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            # Step 3: Force kill
            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                process.kill()
            else:
                self._posix_signal(signal.SIGKILL)

            # Step 4: Wait for forced exit
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            # Process already exited
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")

    def _posix_signal(self, sig: signal.Signals) -> None:
        """Signal the whole process group, falling back to the process."""
        try:
            # Process group ID equals pid due to start_new_session
            pgid = os.getpgid(self._process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to send_signal: {e}")
            self._process.send_signal(sig)

    def _windows_terminate(self) -> None:
        """Send CTRL_BREAK_EVENT to the process group on Windows."""
        try:
            # Works because we used CREATE_NEW_PROCESS_GROUP
            os.kill(self._process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={self._process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            self._process.terminate()


@dataclass
class ProcessLauncher:
    """Validates CommandSpecs and spawns them without waiting.

    Example:
        launcher = ProcessLauncher()
        launcher.validate(spec)
        proc = await launcher.launch(spec)
        async for line in proc.lines():
            handle(line)
        await proc.wait()
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    encoding: str = "utf-8"
    stream_limit: int = STREAM_LIMIT

    def validate(self, spec: CommandSpec) -> None:
        """Check the command before anything is spawned.

        Raises:
            LaunchError: Empty program, missing/invalid working directory, or
                a missing script for a shell-wrapped command
        """
        if not spec.program.strip():
            raise LaunchError(spec.program, FileNotFoundError("program path is empty"))
        if not spec.cwd.exists():
            raise LaunchError(
                spec.program,
                FileNotFoundError(errno.ENOENT, "working directory does not exist", str(spec.cwd)),
            )
        if not spec.cwd.is_dir():
            raise LaunchError(
                spec.program,
                NotADirectoryError(errno.ENOTDIR, "working directory is not a directory", str(spec.cwd)),
            )
        if spec.shell is not ShellWrap.NONE:
            # The shell would start fine and only then fail on the script
            script = Path(spec.program)
            if not script.is_absolute():
                script = spec.cwd / script
            if not script.is_file():
                raise LaunchError(
                    spec.program,
                    FileNotFoundError(errno.ENOENT, "script not found", str(script)),
                )

    async def launch(self, spec: CommandSpec) -> LaunchedProcess:
        """Spawn the child and return as soon as it exists.

        Raises:
            LaunchError: Validation failed or the OS refused to start it
        """
        self.validate(spec)
        argv = spec.argv()
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            # stdin=DEVNULL: build tools must never wait on the console
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=spec.cwd,
                limit=self.stream_limit,
                **kwargs,
            )
        except OSError as e:
            logger.debug(f"Spawn failed argv0={argv[0]}: {e}")
            raise LaunchError(spec.program, e) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={argv[0]} cwd={spec.cwd}")
        return LaunchedProcess(
            process,
            spec,
            term_timeout=self.term_timeout,
            kill_timeout=self.kill_timeout,
            encoding=self.encoding,
        )

    def _build_subprocess_kwargs(self, spec: CommandSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}

        # Environment
        if spec.env is not None:
            kwargs["env"] = {**os.environ, **spec.env}

        # Platform-specific isolation
        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs
